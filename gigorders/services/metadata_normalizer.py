"""
Field rules for order input and the order metadata bag.

Every ``normalize_*`` helper either returns a clean value or raises
ValidationError. None of them touch the database, so a mutation can
compute its complete write set before issuing the first statement.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from dateutil import parser as date_parser

from gigorders.utils.dates import as_utc
from gigorders.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
# Numeric(12, 2) columns
MAX_AMOUNT = Decimal("1e10")
CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


class _Missing:
    """Marks a metadata key that is absent, as opposed to explicitly null."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "MISSING"


MISSING = _Missing()


def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def to_decimal(value):
    """Lenient conversion used on the read path. Bad input becomes Decimal 0."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


def format_money(value):
    if value is None:
        return None
    return float(to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP))


def normalize_id(value, field_name="id"):
    if _is_blank(value) or isinstance(value, bool):
        raise ValidationError(f"{field_name} is required.", details={field_name: "required"})
    try:
        parsed = int(str(value).strip())
    except ValueError:
        raise ValidationError(f"{field_name} must be a positive integer.", details={field_name: value})
    if parsed <= 0:
        raise ValidationError(f"{field_name} must be a positive integer.", details={field_name: value})
    return parsed


def normalize_amount(value, field_name="amount"):
    if _is_blank(value):
        return Decimal("0.00")
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a non-negative number.", details={field_name: value})
    try:
        numeric = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a non-negative number.", details={field_name: value})
    if not numeric.is_finite() or numeric < 0:
        raise ValidationError(f"{field_name} must be a non-negative number.", details={field_name: str(value)})
    if numeric >= MAX_AMOUNT:
        raise ValidationError(f"{field_name} is too large.", details={field_name: str(value)})
    return numeric.quantize(CENTS, rounding=ROUND_HALF_UP)


def normalize_currency(value, fallback="USD"):
    if _is_blank(value):
        return fallback
    if not isinstance(value, str):
        raise ValidationError("Currency codes must be strings.", details={"currency": value})
    code = value.strip().upper()
    if not CURRENCY_RE.match(code):
        raise ValidationError(
            "Currency codes must be three letters.",
            details={"currency": value}
        )
    return code


def normalize_csat(value):
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        raise ValidationError("CSAT score must be numeric.", details={"csat_score": value})
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        raise ValidationError("CSAT score must be numeric.", details={"csat_score": value})
    if not math.isfinite(numeric):
        raise ValidationError("CSAT score must be numeric.", details={"csat_score": value})
    if numeric < 0 or numeric > 5:
        raise ValidationError("CSAT score must be between 0 and 5.", details={"csat_score": value})
    return float(Decimal(str(numeric)).quantize(CENTS, rounding=ROUND_HALF_UP))


def normalize_progress(value):
    if _is_blank(value):
        return Decimal("0.00")
    amount = normalize_amount(value, "progress_percent")
    if amount > 100:
        raise ValidationError("progress_percent must be between 0 and 100.", details={"progress_percent": value})
    return amount


def normalize_tags(tags):
    """Return an ordered list of unique, trimmed, non-empty tags.

    Accepts a list, a comma-separated string, or a mapping whose values are
    the tags. Anything else is rejected.
    """
    if tags is None:
        return None
    if isinstance(tags, str):
        candidates = tags.split(",")
    elif isinstance(tags, (list, tuple)):
        candidates = list(tags)
    elif isinstance(tags, dict):
        candidates = list(tags.values())
    else:
        raise ValidationError(
            "Tags must be a list, comma-separated string, or object.",
            details={"tags": repr(tags)}
        )

    seen = []
    for candidate in candidates:
        if candidate is None:
            continue
        if not isinstance(candidate, str):
            raise ValidationError("Tags must be strings.", details={"tags": repr(candidate)})
        tag = candidate.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def sanitize_date(value, field_name="date"):
    if _is_blank(value):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str):
        raise ValidationError(f"Invalid {field_name} value provided.", details={field_name: repr(value)})
    try:
        parsed = date_parser.isoparse(value.strip())
    except ValueError:
        try:
            parsed = date_parser.parse(value.strip())
        except (ValueError, OverflowError):
            raise ValidationError(f"Invalid {field_name} value provided.", details={field_name: value})
    return as_utc(parsed)


def ensure_from_set(value, allowed, field_name):
    if value is None:
        return None
    if value not in allowed:
        raise ValidationError(
            f"{field_name} must be one of: {', '.join(allowed)}",
            details={field_name: value, "allowed": list(allowed)}
        )
    return value


def parse_metadata_bag(raw):
    """Decode a stored metadata bag.

    Legacy rows may hold a JSON string, or garbage. Anything that does not
    decode to an object is treated as an empty bag rather than an error.
    """
    if raw is None:
        return {}
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable metadata bag")
            return {}
    if not isinstance(raw, dict):
        return {}
    return dict(raw)


def _date_to_bag(value):
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    return value


def _lenient_date(value):
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, str) and value.strip():
        try:
            return as_utc(date_parser.isoparse(value.strip()))
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class OrderMetadata:
    """Typed view of the order metadata bag.

    Every known key has its own member. A member holding MISSING was not in
    the bag; None means the key was explicitly cleared. Keys this class does
    not know about survive untouched in ``extra``.
    """

    pipeline_stage: object = MISSING
    intake_status: object = MISSING
    kickoff_status: object = MISSING
    kickoff_completed_at: object = MISSING
    csat_score: object = MISSING
    tags: object = MISSING
    notes: object = MISSING
    last_client_contact_at: object = MISSING
    next_client_touchpoint_at: object = MISSING
    escrow_currency: object = MISSING
    escrow_total_amount: object = MISSING
    # derived caches, always recomputed on read
    pending_requirements: object = MISSING
    open_revisions: object = MISSING
    outstanding_escrow: object = MISSING
    extra: dict = field(default_factory=dict)

    DATE_KEYS = ("kickoff_completed_at", "last_client_contact_at", "next_client_touchpoint_at")
    CACHE_KEYS = ("pending_requirements", "open_revisions", "outstanding_escrow")

    @classmethod
    def known_keys(cls):
        return tuple(f.name for f in fields(cls) if f.name != "extra")

    @classmethod
    def from_bag(cls, raw):
        bag = parse_metadata_bag(raw)
        known = cls.known_keys()
        values = {key: bag[key] for key in known if key in bag}
        extra = {key: value for key, value in bag.items() if key not in known}
        return cls(extra=extra, **values)

    def get(self, key, default=None):
        value = getattr(self, key)
        if value is MISSING or value is None:
            return default
        return value

    def has(self, key):
        """True when the key carries a non-null value."""
        return getattr(self, key) not in (MISSING, None)

    def date(self, key):
        return _lenient_date(getattr(self, key))

    def merged(self, patch):
        """Shallow, per-key last-write-wins merge. Returns a new record."""
        changes = {
            key: getattr(patch, key)
            for key in self.known_keys()
            if getattr(patch, key) is not MISSING
        }
        extra = dict(self.extra)
        extra.update(patch.extra)
        return replace(self, extra=extra, **changes)

    def with_values(self, **values):
        return replace(self, **values)

    def to_bag(self):
        bag = dict(self.extra)
        for key in self.known_keys():
            value = getattr(self, key)
            if value is MISSING:
                continue
            if isinstance(value, Decimal):
                value = float(value)
            bag[key] = _date_to_bag(value)
        return bag


# (payload key, metadata member, normalizer). Shared by create and update so
# both build the metadata patch from the same field list.
METADATA_FIELDS = (
    ("intake_status", "intake_status", None),
    ("kickoff_status", "kickoff_status", None),
    ("kickoff_completed_at", "kickoff_completed_at", "date"),
    ("csat_score", "csat_score", "csat"),
    ("tags", "tags", "tags"),
    ("notes", "notes", None),
    ("last_client_contact_at", "last_client_contact_at", "date"),
    ("next_client_touchpoint_at", "next_client_touchpoint_at", "date"),
    ("escrow_currency", "escrow_currency", "currency"),
    ("escrow_total_amount", "escrow_total_amount", "amount"),
)


def build_metadata_patch(payload, enums=None, fallbacks=None):
    """Validate the metadata-bound keys of a create/update payload.

    Only keys present in ``payload`` end up in the patch. ``fallbacks``
    supplies values for keys the payload omits (used on create).
    ``enums`` maps enum-valued members to their allowed values.
    """
    enums = enums or {}
    fallbacks = fallbacks or {}
    values = {}

    for payload_key, member, kind in METADATA_FIELDS:
        if payload_key in payload:
            raw = payload[payload_key]
        elif member in fallbacks:
            raw = fallbacks[member]
        else:
            continue

        if member in enums:
            value = ensure_from_set(raw, enums[member], payload_key)
        elif kind == "date":
            value = sanitize_date(raw, payload_key)
        elif kind == "csat":
            value = normalize_csat(raw)
        elif kind == "tags":
            value = normalize_tags(raw)
        elif kind == "currency":
            value = None if raw is None else normalize_currency(raw)
        elif kind == "amount":
            value = None if raw is None else float(normalize_amount(raw, payload_key))
        else:
            value = raw
        values[member] = value

    extra = payload.get("metadata") or {}
    if not isinstance(extra, dict):
        raise ValidationError("metadata must be an object.", details={"metadata": repr(extra)})
    reserved = set(OrderMetadata.known_keys())
    passthrough = {k: v for k, v in extra.items() if k not in reserved}
    return OrderMetadata(extra=passthrough, **values)
