"""Canonical flight record hashing.

The hash is computed over a fixed, ordered list of fields so that the same
logical record always yields the same digest regardless of attribute order,
ORM state or database backend. Values are normalized before serialization:

* ``None`` becomes ``""``
* datetimes become naive UTC ISO-8601 with microseconds
* dates become ISO-8601
* decimals and floats become plain decimal strings without trailing zeros
* enums become their value
"""

import enum
import hashlib
import json
from datetime import date, datetime
from decimal import Decimal

from aerolog_core.models.flight_record import PILOT_SECTION_FIELDS, POST_PILOT_FIELDS
from aerolog_core.models.signature import HashScope
from aerolog_core.utils.time import as_naive_utc

IDENTITY_FIELDS = ("id", "aircraft_id")

SCOPE_FIELDS = {
    HashScope.PILOT_SECTION: IDENTITY_FIELDS + PILOT_SECTION_FIELDS,
    HashScope.FULL_RECORD: IDENTITY_FIELDS + PILOT_SECTION_FIELDS + POST_PILOT_FIELDS,
}


def normalize_value(value) -> str:
    """Normalize a single field value to its canonical string form."""
    if value is None:
        return ""
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return as_naive_utc(value).isoformat(timespec="microseconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (Decimal, float)):
        normalized = Decimal(str(value)).normalize()
        if normalized == 0:
            return "0"
        return format(normalized, "f")
    return str(value)


def canonical_payload(record, scope: HashScope = HashScope.FULL_RECORD) -> str:
    """Serialize the fields covered by ``scope`` as a compact JSON array."""
    fields = SCOPE_FIELDS[HashScope(scope)]
    values = [normalize_value(getattr(record, name, None)) for name in fields]
    return json.dumps(values, separators=(",", ":"), ensure_ascii=False)


def hash_record(record, scope: HashScope = HashScope.FULL_RECORD) -> str:
    """SHA-256 hex digest of the canonical payload."""
    return hashlib.sha256(canonical_payload(record, scope).encode("utf-8")).hexdigest()
