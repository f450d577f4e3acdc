# ==============================================================================
# Queue Store Abstract Base Class
# ==============================================================================
"""
Abstract interface for the durable, capacity-bounded event queue.

Records are kept in enqueue order and identified by their sequence number.
Reads never remove anything: the dispatcher peeks a batch, sends it, and
only removes the exact sequences the server accepted. A record is therefore
either still counted or gone, never both "sent" and queued.

Implementations: Valkey (sorted set + hash), PostgreSQL (table).
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from eventrelay.core.models import QueueRecord, TrackedEvent


class QueueStore(ABC):
    """
    Ordered, durable store of queued events.

    All operations are atomic with respect to each other. Implementations
    serialize mutations so concurrent enqueues cannot break the capacity
    check or the sequence order.
    """

    def __init__(self, max_queued_events: int = 500):
        """
        Args:
            max_queued_events: Capacity bound; enqueue fails once reached
        """
        self.max_queued_events = max_queued_events

    @abstractmethod
    def enqueue(self, event: TrackedEvent) -> bool:
        """
        Append an event with a fresh sequence number and commit it.

        Args:
            event: Event to queue

        Returns:
            True if stored, False if the queue is full (nothing changed)
        """
        ...

    @abstractmethod
    def peek_batch(self, limit: int) -> list[QueueRecord]:
        """
        Read up to `limit` oldest records without removing them.

        Args:
            limit: Maximum number of records to return

        Returns:
            Records ordered by ascending sequence
        """
        ...

    @abstractmethod
    def remove_batch(self, sequences: Iterable[int]) -> int:
        """
        Delete exactly the given records. Unknown sequences are ignored.

        Args:
            sequences: Sequence numbers to delete

        Returns:
            Count of records actually deleted
        """
        ...

    @abstractmethod
    def clear(self) -> int:
        """
        Delete all queued records. Sequence numbering is not reset.

        Returns:
            Count of records deleted
        """
        ...

    @abstractmethod
    def count(self) -> int:
        """Return the number of queued records."""
        ...

    def close(self) -> None:
        """Release backend resources."""
