# ==============================================================================
# Shared Test Fixtures
# ==============================================================================
"""
Pytest fixtures shared across all test modules.

Provides:
- fakeredis-backed ValkeyCache and ValkeyQueueStore instances
- A controllable clock for session timing
- A Tracker wired to fakeredis and a mock transport (timer not armed)
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import fakeredis
import pytest

from eventrelay.base import Transport
from eventrelay.infrastructure.cache import ValkeyCache
from eventrelay.infrastructure.queue import ValkeyQueueStore
from eventrelay.tracker import Tracker
from eventrelay.utils.config import DispatchSettings, TrackerSettings

KEY_PREFIX = "test"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture()
def fake_redis():
    """A clean fakeredis instance for each test.

    Uses decode_responses=True to match the real Valkey client behavior.
    """
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    yield client
    client.flushall()
    client.close()


@pytest.fixture()
def fake_cache(fake_redis):
    """A ValkeyCache sharing the fakeredis client."""
    return ValkeyCache(client=fake_redis)


@pytest.fixture()
def queue_store(fake_redis):
    """A ValkeyQueueStore backed by fakeredis."""
    return ValkeyQueueStore(fake_redis, max_queued_events=500, key_prefix=KEY_PREFIX)


@pytest.fixture()
def transport():
    """A transport that accepts every request."""
    return MagicMock(spec=Transport)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def make_tracker(queue_store, fake_cache, transport, clock):
    """Factory for trackers over the shared fakes.

    Keyword arguments override TrackerSettings fields; `dispatch` takes a
    dict of DispatchSettings overrides. The dispatch interval defaults to
    manual-only so tests control every cycle.
    """
    created = []

    def _make(dispatch: dict | None = None, **tracker_overrides) -> Tracker:
        location_provider = tracker_overrides.pop("location_provider", None)
        rng = tracker_overrides.pop("rng", None)
        tracker_defaults = {"app_name": "demo", "app_version": "1.0"}
        dispatch_defaults = {"interval": -1}
        tracker = Tracker(
            store=queue_store,
            cache=fake_cache,
            transport=transport,
            settings=TrackerSettings(**{**tracker_defaults, **tracker_overrides}),
            dispatch_settings=DispatchSettings(**{**dispatch_defaults, **(dispatch or {})}),
            location_provider=location_provider,
            key_prefix=KEY_PREFIX,
            clock=clock,
            rng=rng,
            start=False,
        )
        created.append(tracker)
        return tracker

    yield _make

    for tracker in created:
        tracker.close()


@pytest.fixture()
def tracker(make_tracker):
    """A tracker with default settings."""
    return make_tracker()
