import json

from sqlalchemy.types import Text, TypeDecorator

from gigorders.services.metadata_normalizer import parse_metadata_bag


class MetadataBag(TypeDecorator):
    """JSON object stored as text. Rows that no longer decode load as ``{}``."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return json.dumps(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return parse_metadata_bag(value)
