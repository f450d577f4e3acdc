# ==============================================================================
# Tests for CLI Commands
# ==============================================================================
"""
Tests for the eventrelay CLI.

Commands get a fakeredis-backed tracker by patching `open_tracker` in the
command module, so no Valkey server or analytics endpoint is needed. CLI
output is captured via typer.testing.CliRunner.
"""

import json
from unittest.mock import patch

from typer.testing import CliRunner

from eventrelay.app import app
from eventrelay.base import TransportError

runner = CliRunner()


def _invoke(module: str, tracker, args: list[str], **kwargs):
    with patch(f"eventrelay.cli.{module}.open_tracker", return_value=tracker):
        return runner.invoke(app, args, **kwargs)


# ==============================================================================
# Help
# ==============================================================================


class TestHelp:
    def test_root_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for cmd in ["config", "dispatch", "opt-out", "queue", "status", "track"]:
            assert cmd in result.output, f"Missing command: {cmd}"

    def test_track_lists_subcommands(self):
        result = runner.invoke(app, ["track", "--help"])
        assert result.exit_code == 0
        for cmd in ["view", "event", "exception", "goal", "search"]:
            assert cmd in result.output

    def test_queue_lists_subcommands(self):
        result = runner.invoke(app, ["queue", "--help"])
        assert result.exit_code == 0
        assert "show" in result.output
        assert "purge" in result.output


# ==============================================================================
# Status
# ==============================================================================


class TestStatus:
    def test_json_output(self, tracker):
        tracker.send_view("home")
        visitor_id = tracker.visitor_id

        result = _invoke("status", tracker, ["status", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["visitor_id"] == visitor_id
        assert data["queue"]["queued"] == 1
        assert data["opt_out"] is False

    def test_box_output(self, tracker):
        result = _invoke("status", tracker, ["status"])
        assert result.exit_code == 0
        assert "eventrelay status" in result.output
        assert "manual only" in result.output


# ==============================================================================
# Track
# ==============================================================================


class TestTrack:
    def test_view(self, tracker):
        result = _invoke("track", tracker, ["track", "view", "settings", "register"])

        assert result.exit_code == 0
        assert "Queued screen view" in result.output
        (record,) = tracker.peek_queued_events(10)
        assert record.event.fields["action_name"] == "screen/settings/register"

    def test_event_with_label(self, tracker):
        result = _invoke(
            "track", tracker, ["track", "event", "video", "play", "--label", "intro"]
        )

        assert result.exit_code == 0
        (record,) = tracker.peek_queued_events(10)
        assert record.event.fields["action_name"] == "event/video/play/intro"

    def test_goal(self, tracker):
        result = _invoke("track", tracker, ["track", "goal", "4", "--revenue", "10"])

        assert result.exit_code == 0
        (record,) = tracker.peek_queued_events(10)
        assert record.event.fields == {"idgoal": "4", "revenue": "10"}

    def test_opted_out(self, tracker):
        tracker.opt_out = True

        result = _invoke("track", tracker, ["track", "view", "home"])

        assert result.exit_code == 1
        assert "opted out" in result.output


# ==============================================================================
# Queue
# ==============================================================================


class TestQueue:
    def test_show_json(self, tracker):
        tracker.send_view("a")
        tracker.send_view("b")

        result = _invoke("queue", tracker, ["queue", "show", "--json", "--limit", "1"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["total"] == 2
        assert len(data["events"]) == 1
        assert data["events"][0]["fields"]["action_name"] == "screen/a"

    def test_show_table(self, tracker):
        tracker.send_view("home")
        result = _invoke("queue", tracker, ["queue", "show"])
        assert result.exit_code == 0
        assert "Queued events" in result.output

    def test_show_empty(self, tracker):
        result = _invoke("queue", tracker, ["queue", "show"])
        assert result.exit_code == 0
        assert "Queue is empty" in result.output

    def test_purge(self, tracker):
        tracker.send_view("a")
        tracker.send_view("b")

        result = _invoke("queue", tracker, ["queue", "purge", "-y"])

        assert result.exit_code == 0
        assert "Deleted 2 queued events" in result.output
        assert tracker.queued_event_count() == 0

    def test_purge_declined(self, tracker):
        tracker.send_view("a")

        result = _invoke("queue", tracker, ["queue", "purge"], input="n\n")

        assert result.exit_code == 1
        assert tracker.queued_event_count() == 1


# ==============================================================================
# Dispatch
# ==============================================================================


class TestDispatch:
    def test_delivers(self, tracker, transport):
        tracker.send_view("a")
        tracker.send_view("b")

        result = _invoke("dispatch", tracker, ["dispatch"])

        assert result.exit_code == 0
        assert "Delivered 2 events" in result.output
        transport.send.assert_called_once()

    def test_empty_queue(self, tracker, transport):
        result = _invoke("dispatch", tracker, ["dispatch"])

        assert result.exit_code == 0
        assert "nothing to dispatch" in result.output
        transport.send.assert_not_called()

    def test_failure(self, tracker, transport):
        transport.send.side_effect = TransportError("offline")
        tracker.send_view("a")

        result = _invoke("dispatch", tracker, ["dispatch"])

        assert result.exit_code == 1
        assert "Dispatch failed" in result.output
        assert tracker.queued_event_count() == 1


# ==============================================================================
# Config and opt-out
# ==============================================================================


class TestConfig:
    def test_show_json(self):
        result = runner.invoke(app, ["config", "show", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["tracker"]["tracking_url"].endswith("/piwik.php")
        assert "events_per_request" in data["dispatch"]

    def test_show(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "Configuration" in result.output

    def test_opt_out_on(self, tracker):
        result = _invoke("config", tracker, ["opt-out", "on"])

        assert result.exit_code == 0
        assert "Opted out" in result.output
        assert tracker.opt_out is True

    def test_opt_out_off(self, tracker):
        tracker.opt_out = True

        result = _invoke("config", tracker, ["opt-out", "off"])

        assert result.exit_code == 0
        assert "Tracking enabled" in result.output
        assert tracker.opt_out is False
