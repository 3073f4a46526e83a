"""
Logging setup for the app factory.

One stream handler on the root logger so module loggers
(``logging.getLogger(__name__)``) and ``app.logger`` share a format.
Level comes from the LOG_LEVEL config key.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(app):
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    if not any(getattr(h, "_gigorders", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._gigorders = True
        root.addHandler(handler)

    root.setLevel(level)
    app.logger.setLevel(level)
    # SQL echo is too noisy outside explicit debugging
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
