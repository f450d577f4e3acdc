# ==============================================================================
# Tests for ValkeyQueueStore
# ==============================================================================
"""
Tests for the Valkey-backed event queue.

Tests cover:
- Enqueue order and sequence numbering
- Capacity bound (including a zero-capacity queue)
- Peek without removal, exact and idempotent removal
- Clear, and sequences not being reused afterwards
- Durability across store instances sharing the same keys
"""

from datetime import datetime, timezone

from eventrelay.core.models import CustomVariable, EventKind, TrackedEvent
from eventrelay.infrastructure.queue import ValkeyQueueStore

# ==============================================================================
# Helpers
# ==============================================================================


def _make_event(name: str = "home", **overrides) -> TrackedEvent:
    values = {
        "timestamp": datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc),
        "visitor_id": "0123456789abcdef",
        "session_id": "session-1",
        "kind": EventKind.SCREEN,
        "fields": {"action_name": f"screen/{name}"},
    }
    values.update(overrides)
    return TrackedEvent(**values)


def _names(records) -> list[str]:
    return [r.event.fields["action_name"] for r in records]


# ==============================================================================
# Enqueue and peek
# ==============================================================================


class TestEnqueue:
    """Tests for appending events."""

    def test_enqueue_increments_count(self, queue_store):
        assert queue_store.enqueue(_make_event("a")) is True
        assert queue_store.enqueue(_make_event("b")) is True
        assert queue_store.count() == 2

    def test_peek_returns_oldest_first(self, queue_store):
        for name in ["a", "b", "c"]:
            queue_store.enqueue(_make_event(name))

        records = queue_store.peek_batch(10)

        assert _names(records) == ["screen/a", "screen/b", "screen/c"]
        sequences = [r.sequence for r in records]
        assert sequences == sorted(sequences)
        assert len(set(sequences)) == 3

    def test_peek_respects_limit(self, queue_store):
        for name in ["a", "b", "c"]:
            queue_store.enqueue(_make_event(name))

        assert _names(queue_store.peek_batch(2)) == ["screen/a", "screen/b"]

    def test_peek_does_not_remove(self, queue_store):
        queue_store.enqueue(_make_event())
        queue_store.peek_batch(10)
        queue_store.peek_batch(10)
        assert queue_store.count() == 1

    def test_peek_zero_limit(self, queue_store):
        queue_store.enqueue(_make_event())
        assert queue_store.peek_batch(0) == []

    def test_peek_empty_queue(self, queue_store):
        assert queue_store.peek_batch(5) == []

    def test_event_survives_round_trip(self, queue_store):
        event = _make_event(
            new_session=True,
            visit_count=3,
            custom_variables={
                2: CustomVariable(name="App name", value="demo"),
                3: CustomVariable(name="App version", value="1.0"),
            },
            first_visit_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            latitude=52.5,
            longitude=13.4,
        )
        queue_store.enqueue(event)

        (record,) = queue_store.peek_batch(1)

        assert record.event == event
        assert record.event.custom_variables[2].value == "demo"


# ==============================================================================
# Capacity
# ==============================================================================


class TestCapacity:
    """Tests for the max_queued_events bound."""

    def test_rejects_when_full(self, fake_redis):
        store = ValkeyQueueStore(fake_redis, max_queued_events=3, key_prefix="cap")
        results = [store.enqueue(_make_event(str(i))) for i in range(4)]

        assert results == [True, True, True, False]
        assert store.count() == 3

    def test_rejected_event_is_not_stored(self, fake_redis):
        store = ValkeyQueueStore(fake_redis, max_queued_events=1, key_prefix="cap")
        store.enqueue(_make_event("kept"))
        store.enqueue(_make_event("dropped"))

        assert _names(store.peek_batch(10)) == ["screen/kept"]

    def test_zero_capacity_rejects_everything(self, fake_redis):
        store = ValkeyQueueStore(fake_redis, max_queued_events=0, key_prefix="cap")
        assert store.enqueue(_make_event()) is False
        assert store.count() == 0

    def test_removal_frees_capacity(self, fake_redis):
        store = ValkeyQueueStore(fake_redis, max_queued_events=1, key_prefix="cap")
        store.enqueue(_make_event("a"))
        (record,) = store.peek_batch(1)
        store.remove_batch([record.sequence])

        assert store.enqueue(_make_event("b")) is True


# ==============================================================================
# Removal
# ==============================================================================


class TestRemoveBatch:
    """Tests for removing delivered records."""

    def test_removes_exactly_the_given_sequences(self, queue_store):
        for name in ["a", "b", "c", "d"]:
            queue_store.enqueue(_make_event(name))
        records = queue_store.peek_batch(10)

        removed = queue_store.remove_batch([records[0].sequence, records[2].sequence])

        assert removed == 2
        assert _names(queue_store.peek_batch(10)) == ["screen/b", "screen/d"]

    def test_remove_is_idempotent(self, queue_store):
        queue_store.enqueue(_make_event())
        (record,) = queue_store.peek_batch(1)

        assert queue_store.remove_batch([record.sequence]) == 1
        assert queue_store.remove_batch([record.sequence]) == 0
        assert queue_store.count() == 0

    def test_remove_empty_list(self, queue_store):
        queue_store.enqueue(_make_event())
        assert queue_store.remove_batch([]) == 0
        assert queue_store.count() == 1


# ==============================================================================
# Clear
# ==============================================================================


class TestClear:
    """Tests for deleting all queued events."""

    def test_clear_returns_removed_count(self, queue_store):
        for name in ["a", "b"]:
            queue_store.enqueue(_make_event(name))

        assert queue_store.clear() == 2
        assert queue_store.count() == 0
        assert queue_store.peek_batch(10) == []

    def test_sequences_not_reused_after_clear(self, queue_store):
        queue_store.enqueue(_make_event("a"))
        queue_store.enqueue(_make_event("b"))
        last_before = queue_store.peek_batch(10)[-1].sequence
        queue_store.clear()

        queue_store.enqueue(_make_event("c"))
        (record,) = queue_store.peek_batch(10)

        assert record.sequence > last_before


# ==============================================================================
# Damaged records
# ==============================================================================


class TestDamagedRecords:
    def test_undecodable_payload_is_dropped(self, queue_store, fake_redis):
        queue_store.enqueue(_make_event("a"))
        queue_store.enqueue(_make_event("b"))
        (first, _) = queue_store.peek_batch(2)
        fake_redis.hset("test:queue:records", str(first.sequence), "{not json")

        assert _names(queue_store.peek_batch(10)) == ["screen/b"]
        assert queue_store.count() == 1

    def test_invalid_record_does_not_block_queue(self, queue_store, fake_redis):
        queue_store.enqueue(_make_event("a"))
        queue_store.enqueue(_make_event("b"))
        (first, _) = queue_store.peek_batch(2)
        fake_redis.hset("test:queue:records", str(first.sequence), '{"kind": "nope"}')

        assert queue_store.peek_batch(1) == []
        assert _names(queue_store.peek_batch(1)) == ["screen/b"]

    def test_missing_payload_is_dropped(self, queue_store, fake_redis):
        queue_store.enqueue(_make_event("a"))
        (record,) = queue_store.peek_batch(1)
        fake_redis.hdel("test:queue:records", str(record.sequence))

        assert queue_store.peek_batch(10) == []
        assert queue_store.count() == 0


# ==============================================================================
# Durability
# ==============================================================================


class TestDurability:
    """A new store over the same keys sees what a previous one queued."""

    def test_new_instance_sees_queued_events(self, fake_redis):
        first = ValkeyQueueStore(fake_redis, key_prefix="durable")
        first.enqueue(_make_event("a"))
        first.enqueue(_make_event("b"))

        second = ValkeyQueueStore(fake_redis, key_prefix="durable")

        assert second.count() == 2
        assert _names(second.peek_batch(10)) == ["screen/a", "screen/b"]

    def test_prefixes_are_isolated(self, fake_redis):
        ValkeyQueueStore(fake_redis, key_prefix="one").enqueue(_make_event())
        assert ValkeyQueueStore(fake_redis, key_prefix="two").count() == 0
