"""Tests for record construction and projection."""

import json
from datetime import datetime, timezone

from wherenow.records import (
    apply_patch,
    build_record,
    id_matches,
    parse_line,
    public_view,
    serialize,
    utc_now_iso,
)

NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
LATER = datetime(2025, 1, 16, 8, 30, 0, tzinfo=timezone.utc)


def _fields(**overrides):
    fields = {
        "id": "123e4567-e89b-42d3-a456-426614174000",
        "lat": 37.5,
        "lon": -122.3,
        "timestamp": None,
        "accuracy": None,
        "label": None,
        "note": None,
        "category": None,
        "reason": None,
    }
    fields.update(overrides)
    return fields


class TestUtcNowIso:
    def test_format(self):
        assert utc_now_iso(NOW) == "2025-01-15T12:00:00+00:00"


class TestBuildRecord:
    def test_server_timestamp_when_missing(self):
        record = build_record(_fields(), "curl/8.0", NOW)
        assert record["timestamp"] == "2025-01-15T12:00:00+00:00"
        assert record["receivedAt"] == "2025-01-15T12:00:00+00:00"
        assert record["ua"] == "curl/8.0"
        assert "updatedAt" not in record

    def test_client_timestamp_preserved(self):
        record = build_record(_fields(timestamp="2024-12-31T23:59:59Z"), None, NOW)
        assert record["timestamp"] == "2024-12-31T23:59:59Z"
        assert record["receivedAt"] == "2025-01-15T12:00:00+00:00"
        assert record["ua"] is None


class TestApplyPatch:
    def test_only_given_fields_change(self):
        record = build_record(_fields(label="Old", note="keep"), None, NOW)
        patched = apply_patch(record, {"label": "Home"}, LATER)
        assert patched["label"] == "Home"
        assert patched["note"] == "keep"
        assert patched["lat"] == 37.5
        assert patched["updatedAt"] == "2025-01-16T08:30:00+00:00"
        assert "updatedAt" not in record

    def test_null_clears(self):
        record = build_record(_fields(category="work"), None, NOW)
        assert apply_patch(record, {"category": None}, LATER)["category"] is None


class TestPublicView:
    def test_projection(self):
        record = build_record(_fields(), "ua-string", NOW)
        view = public_view(record)
        assert view["id"] == record["id"]
        assert view["reason"] == "upload"
        assert view["receivedAt"] == record["receivedAt"]
        assert "ua" not in view
        assert "updatedAt" not in view

    def test_legacy_record_without_id(self):
        view = public_view({"lat": 1.0, "lon": 2.0, "timestamp": "t"})
        assert "id" not in view
        assert view["label"] is None
        assert view["reason"] == "upload"


class TestSerialization:
    def test_single_compact_line(self):
        line = serialize({"note": "café/bar", "lat": 1.5})
        assert line.endswith(b"\n")
        assert line.count(b"\n") == 1
        text = line.decode("utf-8")
        assert "café/bar" in text
        assert json.loads(text) == {"note": "café/bar", "lat": 1.5}

    def test_parse_line_skips_garbage(self):
        assert parse_line(b"") is None
        assert parse_line(b"   ") is None
        assert parse_line(b'{"lat": 1') is None
        assert parse_line(b"[1, 2]") is None
        assert parse_line(b"\xff\xfe") is None
        assert parse_line(b'{"lat": 1}\r') == {"lat": 1}

    def test_id_matches_case_insensitive(self):
        data = {"id": "123e4567-e89b-42d3-a456-426614174000"}
        assert id_matches(data, "123E4567-E89B-42D3-A456-426614174000")
        assert not id_matches({"id": 5}, "5")
        assert not id_matches({}, "x")
