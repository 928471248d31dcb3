"""LocationRecord construction, serialization, and the public read projection."""

import json
from datetime import datetime, timezone

DEFAULT_REASON = "upload"

# field -> max length in code points
TEXT_FIELDS = {
    "label": 60,
    "note": 500,
    "category": 60,
}
PATCHABLE_FIELDS = tuple(TEXT_FIELDS)

PUBLIC_FIELDS = ("lat", "lon", "timestamp", "accuracy", "label", "note", "category")


def utc_now_iso(now: datetime | None = None) -> str:
    """ISO-8601 UTC with second precision, e.g. ``2025-01-15T12:00:00+00:00``."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="seconds")


def reason_of(data: dict):
    reason = data.get("reason")
    return DEFAULT_REASON if reason is None else reason


def build_record(fields: dict, user_agent: str | None, now: datetime | None = None) -> dict:
    """Build the stored record from validated fields."""
    received_at = utc_now_iso(now)
    timestamp = fields.get("timestamp")
    return {
        "id": fields["id"],
        "lat": fields["lat"],
        "lon": fields["lon"],
        "timestamp": timestamp if timestamp else received_at,
        "accuracy": fields.get("accuracy"),
        "label": fields.get("label"),
        "note": fields.get("note"),
        "category": fields.get("category"),
        "reason": fields.get("reason"),
        "receivedAt": received_at,
        "ua": user_agent,
    }


def apply_patch(record: dict, changes: dict, now: datetime | None = None) -> dict:
    """Return a copy of *record* with *changes* applied and ``updatedAt`` refreshed."""
    patched = dict(record)
    for field in PATCHABLE_FIELDS:
        if field in changes:
            patched[field] = changes[field]
    patched["updatedAt"] = utc_now_iso(now)
    return patched


def public_view(data: dict) -> dict:
    """Project a stored record onto the fields returned by the read path."""
    view = {}
    if "id" in data:
        view["id"] = data["id"]
    for field in PUBLIC_FIELDS:
        view[field] = data.get(field)
    view["reason"] = reason_of(data)
    for field in ("receivedAt", "updatedAt"):
        if field in data:
            view[field] = data[field]
    return view


def serialize(record: dict) -> bytes:
    """One JSON Lines line: compact, unicode unescaped, newline-terminated."""
    return (json.dumps(record, ensure_ascii=False, separators=(",", ":")) + "\n").encode("utf-8")


def parse_line(line: bytes | str) -> dict | None:
    """Parse one log line; None for blank, malformed, or non-object lines."""
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError:
            return None
    line = line.strip()
    if not line:
        return None
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def id_matches(data: dict, record_id: str) -> bool:
    stored = data.get("id")
    return isinstance(stored, str) and stored.lower() == record_id.lower()
