# ==============================================================================
# Valkey Queue Store
# ==============================================================================
"""
Valkey/Redis implementation of the QueueStore interface.

Key layout (under the configured prefix):
    {prefix}:queue:seq      INCR counter, source of sequence numbers
    {prefix}:queue:index    sorted set, member = score = sequence
    {prefix}:queue:records  hash, sequence -> TrackedEvent JSON

The counter is never reset, so sequences are not reused after clear().
Appends and removals go through MULTI/EXEC pipelines so the index and the
payload hash always change together.
"""

import json
import logging
import threading
from collections.abc import Iterable

import redis
from redis.exceptions import WatchError

from eventrelay.base.queue_store import QueueStore
from eventrelay.core.models import QueueRecord, TrackedEvent

logger = logging.getLogger(__name__)

# Optimistic-lock attempts against other processes sharing the queue
MAX_WATCH_RETRIES = 10


class ValkeyQueueStore(QueueStore):
    """
    Durable FIFO queue stored in Valkey.

    A process-local lock serializes callers inside one process; WATCH on the
    index key protects the capacity check against other processes.
    """

    def __init__(
        self,
        client: redis.Redis,
        max_queued_events: int = 500,
        key_prefix: str = "eventrelay",
    ):
        """
        Args:
            client: Redis client (decode_responses=True)
            max_queued_events: Capacity bound
            key_prefix: Namespace for queue keys
        """
        super().__init__(max_queued_events)
        self._client = client
        self._seq_key = f"{key_prefix}:queue:seq"
        self._index_key = f"{key_prefix}:queue:index"
        self._records_key = f"{key_prefix}:queue:records"
        self._lock = threading.Lock()

    @property
    def client(self) -> redis.Redis:
        """Get the underlying Redis client."""
        return self._client

    # ==========================================================================
    # QueueStore Interface Implementation
    # ==========================================================================

    def enqueue(self, event: TrackedEvent) -> bool:
        payload = json.dumps(event.to_store_record())

        with self._lock:
            for _ in range(MAX_WATCH_RETRIES):
                with self._client.pipeline() as pipe:
                    try:
                        pipe.watch(self._index_key)
                        if pipe.zcard(self._index_key) >= self.max_queued_events:
                            pipe.unwatch()
                            logger.warning(
                                "Queue full (%d events), dropping %s event",
                                self.max_queued_events,
                                event.kind.value,
                            )
                            return False

                        # INCR runs outside the transaction; a gap in the
                        # numbering after a failed EXEC is harmless
                        sequence = pipe.incr(self._seq_key)

                        pipe.multi()
                        pipe.hset(self._records_key, str(sequence), payload)
                        pipe.zadd(self._index_key, {str(sequence): sequence})
                        pipe.execute()
                        return True
                    except WatchError:
                        logger.debug("Queue index changed during enqueue, retrying")
                        continue

        logger.warning("Could not enqueue event after %d attempts", MAX_WATCH_RETRIES)
        return False

    def peek_batch(self, limit: int) -> list[QueueRecord]:
        if limit <= 0:
            return []

        with self._lock:
            members = self._client.zrange(self._index_key, 0, limit - 1)
            if not members:
                return []
            payloads = self._client.hmget(self._records_key, members)

        records = []
        unreadable = []
        for member, payload in zip(members, payloads):
            if payload is None:
                logger.warning("Queue index entry %s has no payload, dropping it", member)
                unreadable.append(member)
                continue
            try:
                event = TrackedEvent.from_store_record(json.loads(payload))
            except ValueError as e:
                logger.warning("Dropping undecodable queued event %s: %s", member, e)
                unreadable.append(member)
                continue
            records.append(QueueRecord(sequence=int(member), event=event))

        # Unreadable entries are removed, not retried
        if unreadable:
            self.remove_batch(unreadable)
        return records

    def remove_batch(self, sequences: Iterable[int]) -> int:
        members = [str(s) for s in sequences]
        if not members:
            return 0

        with self._lock:
            pipe = self._client.pipeline(transaction=True)
            pipe.zrem(self._index_key, *members)
            pipe.hdel(self._records_key, *members)
            removed, _ = pipe.execute()
        return removed

    def clear(self) -> int:
        with self._lock:
            pipe = self._client.pipeline(transaction=True)
            pipe.zcard(self._index_key)
            pipe.delete(self._index_key, self._records_key)
            count, _ = pipe.execute()
        logger.info("Deleted %d queued events", count)
        return count

    def count(self) -> int:
        return self._client.zcard(self._index_key)

    def close(self) -> None:
        self._client.close()
