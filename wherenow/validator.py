"""Request body validation — per-field JSON schemas checked in a fixed order.

The first failing field decides the error code (``bad_lat``, ``bad_lon``, ...),
so each field gets its own compiled validator instead of one object schema.
"""

import logging
import math
import re

import jsonschema

from wherenow.errors import BadRequest
from wherenow.records import PATCHABLE_FIELDS, TEXT_FIELDS

logger = logging.getLogger(__name__)

UUID_PATTERN = (
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-"
    r"[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\Z"
)

# Numeric strings are accepted for coordinates and accuracy, e.g. "37.5".
_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")

FIELD_SCHEMAS = {
    "lat": {"type": "number", "minimum": -90, "maximum": 90},
    "lon": {"type": "number", "minimum": -180, "maximum": 180},
    "id": {"type": "string", "pattern": UUID_PATTERN},
    "timestamp": {"type": "string"},
}
FIELD_SCHEMAS.update(
    {name: {"type": "string", "maxLength": limit} for name, limit in TEXT_FIELDS.items()}
)


def to_number(value):
    """Coerce a JSON number or numeric string to float; None if not numeric or not finite."""
    if isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    if isinstance(value, str) and not _NUMERIC_RE.match(value):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


class LocationValidator:
    """Validates and normalizes create and patch bodies."""

    def __init__(self):
        self._validators = {
            name: jsonschema.Draft202012Validator(schema)
            for name, schema in FIELD_SCHEMAS.items()
        }

    def _check(self, field, value):
        if not self._validators[field].is_valid(value):
            logger.warning("Rejected request: bad %s", field)
            raise BadRequest(f"bad_{field}")
        return value

    def _coordinate(self, field, value):
        number = to_number(value)
        # None fails the schema's type check
        self._check(field, number)
        return number

    def _text(self, field, value):
        """Trimmed string, or None when empty after trimming."""
        if isinstance(value, str):
            value = value.strip()
        self._check(field, value)
        return value or None

    def _record_id(self, value):
        return self._check("id", value).lower()

    @staticmethod
    def _require_object(payload):
        if not isinstance(payload, dict):
            raise BadRequest("invalid_json")

    def validate_create(self, payload) -> dict:
        """Validate a create body. Returns normalized fields or raises BadRequest."""
        self._require_object(payload)

        fields = {
            "lat": self._coordinate("lat", payload.get("lat")),
            "lon": self._coordinate("lon", payload.get("lon")),
            "id": self._record_id(payload.get("id")),
        }

        timestamp = payload.get("timestamp")
        if timestamp is not None:
            self._check("timestamp", timestamp)
        fields["timestamp"] = timestamp or None

        for field in TEXT_FIELDS:
            value = payload.get(field)
            fields[field] = None if value is None else self._text(field, value)

        fields["accuracy"] = to_number(payload.get("accuracy"))
        reason = payload.get("reason")
        fields["reason"] = reason if isinstance(reason, str) else None
        return fields

    def validate_patch(self, payload) -> tuple[str, dict]:
        """Validate a patch body. Returns (id, changes); only keys present in the body appear in changes."""
        self._require_object(payload)
        record_id = self._record_id(payload.get("id"))

        changes = {}
        for field in PATCHABLE_FIELDS:
            if field not in payload:
                continue
            value = payload[field]
            changes[field] = None if value is None else self._text(field, value)
        return record_id, changes
