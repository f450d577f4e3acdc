# ==============================================================================
# Tests for HitEncoder
# ==============================================================================
"""
Tests for turning queued records into tracking API requests.

Tests cover:
- Parameters of a single hit (identity, visit bookkeeping, custom variables)
- Authenticated extras (cdt, token_auth)
- Bulk bodies in both encodings
- Hierarchical name joining
"""

import json
from datetime import datetime, timezone
from urllib.parse import parse_qs, unquote

import pytest

from eventrelay.core.encoding import (
    BulkEncoding,
    BulkRequest,
    HitEncoder,
    SingleRequest,
    join_path,
)
from eventrelay.core.models import CustomVariable, EventKind, QueueRecord, TrackedEvent

TIMESTAMP = datetime(2024, 3, 1, 12, 30, 45, tzinfo=timezone.utc)

# ==============================================================================
# Helpers
# ==============================================================================


def _make_event(**overrides) -> TrackedEvent:
    values = {
        "timestamp": TIMESTAMP,
        "visitor_id": "0123456789abcdef",
        "session_id": "s1",
        "kind": EventKind.SCREEN,
        "fields": {"action_name": "screen/home"},
        "custom_variables": {
            2: CustomVariable(name="App name", value="demo"),
            3: CustomVariable(name="App version", value="1.0"),
        },
        "visit_count": 2,
    }
    values.update(overrides)
    return TrackedEvent(**values)


def _records(count: int) -> list[QueueRecord]:
    return [
        QueueRecord(sequence=i + 1, event=_make_event(fields={"action_name": f"screen/{i}"}))
        for i in range(count)
    ]


# ==============================================================================
# join_path
# ==============================================================================


class TestJoinPath:
    def test_joins_segments(self):
        assert join_path(["screen", "settings", "register"]) == "screen/settings/register"

    def test_skips_missing_segments(self):
        assert join_path(["event", "video", "play", None]) == "event/video/play"
        assert join_path(["event", "", "play"]) == "event/play"


# ==============================================================================
# encode_hit
# ==============================================================================


class TestEncodeHit:
    def test_base_parameters(self):
        params = HitEncoder(site_id="7", app_name="demo").encode_hit(_make_event())

        assert params["idsite"] == "7"
        assert params["rec"] == "1"
        assert params["apiv"] == "1"
        assert params["_id"] == "0123456789abcdef"
        assert params["url"] == "http://demo/screen/home"
        assert params["action_name"] == "screen/home"
        assert params["_idvc"] == "2"
        assert params["rand"].isdigit()

    def test_local_time_parameters(self):
        params = HitEncoder(site_id="1", app_name="demo").encode_hit(_make_event())
        local = TIMESTAMP.astimezone()

        assert (params["h"], params["m"], params["s"]) == (
            str(local.hour),
            str(local.minute),
            str(local.second),
        )

    def test_custom_variables(self):
        params = HitEncoder(site_id="1", app_name="demo").encode_hit(_make_event())
        assert params["_cvar"] == '{"2":["App name","demo"],"3":["App version","1.0"]}'

    def test_new_visit_flag(self):
        encoder = HitEncoder(site_id="1", app_name="demo")
        assert encoder.encode_hit(_make_event(new_session=True))["new_visit"] == "1"
        assert "new_visit" not in encoder.encode_hit(_make_event(new_session=False))

    def test_visit_timestamps(self):
        event = _make_event(
            first_visit_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            previous_visit_at=datetime(2024, 2, 1, tzinfo=timezone.utc),
        )
        params = HitEncoder(site_id="1", app_name="demo").encode_hit(event)

        assert params["_idts"] == "1704067200"
        assert params["_viewts"] == "1706745600"

    def test_visit_timestamps_omitted_when_unknown(self):
        params = HitEncoder(site_id="1", app_name="demo").encode_hit(_make_event())
        assert "_idts" not in params
        assert "_viewts" not in params

    def test_location(self):
        event = _make_event(latitude=52.52, longitude=13.405)
        params = HitEncoder(site_id="1", app_name="demo").encode_hit(event)

        assert params["lat"] == "52.520000"
        assert params["long"] == "13.405000"

    def test_screen_resolution(self):
        encoder = HitEncoder(site_id="1", app_name="demo", screen_resolution="1920x1080")
        assert encoder.encode_hit(_make_event())["res"] == "1920x1080"

    def test_kind_specific_fields(self):
        event = _make_event(kind=EventKind.SEARCH, fields={"search": "shoes", "search_count": "3"})
        params = HitEncoder(site_id="1", app_name="demo").encode_hit(event)

        assert params["search"] == "shoes"
        assert params["search_count"] == "3"
        assert params["url"] == "http://demo"

    def test_no_token_no_authenticated_extras(self):
        params = HitEncoder(site_id="1", app_name="demo").encode_hit(_make_event())
        assert "token_auth" not in params
        assert "cdt" not in params

    def test_token_adds_backdating(self):
        encoder = HitEncoder(site_id="1", app_name="demo", authentication_token="secret")
        params = encoder.encode_hit(_make_event())

        assert params["token_auth"] == "secret"
        assert params["cdt"] == "2024-03-01 12:30:45"


# ==============================================================================
# Requests
# ==============================================================================


class TestSingleRequest:
    def test_carries_sequence(self):
        (record,) = _records(1)
        request = HitEncoder(site_id="1", app_name="demo").single(record)

        assert isinstance(request, SingleRequest)
        assert request.sequences == (1,)
        assert request.params["action_name"] == "screen/0"


class TestBulkRequest:
    def test_requires_token(self):
        encoder = HitEncoder(site_id="1", app_name="demo")
        assert encoder.supports_bulk is False
        with pytest.raises(ValueError):
            encoder.bulk(_records(2))

    def test_current_encoding(self):
        encoder = HitEncoder(site_id="1", app_name="demo", authentication_token="secret")
        request = encoder.bulk(_records(3))
        body = json.loads(request.body)

        assert isinstance(request, BulkRequest)
        assert request.sequences == (1, 2, 3)
        assert request.size == 3
        assert request.content_type.startswith("application/json")
        assert body["token_auth"] == "secret"
        assert len(body["requests"]) == 3
        assert all(q.startswith("?") for q in body["requests"])
        first = parse_qs(body["requests"][0][1:])
        assert first["action_name"] == ["screen/0"]
        assert first["idsite"] == ["1"]

    def test_legacy_encoding(self):
        encoder = HitEncoder(
            site_id="1",
            app_name="demo",
            authentication_token="secret",
            bulk_encoding=BulkEncoding.LEGACY,
        )
        request = encoder.bulk(_records(2))
        body = json.loads(request.body)

        assert request.content_type.startswith("application/x-www-form-urlencoded")
        assert body["token_auth"] == "secret"
        assert all(q.startswith("%3F") for q in body["requests"])
        decoded = parse_qs(unquote(body["requests"][1])[1:])
        assert decoded["action_name"] == ["screen/1"]
