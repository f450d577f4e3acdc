# ==============================================================================
# Preference Store Abstract Base Class
# ==============================================================================
"""
Durable key-value storage for tracker preferences.

Only a few small documents live here: the visitor id, the opt-out flag,
and the session/visit bookkeeping. They must outlive the process, so an
implementation always sits on persistent storage (Valkey in production,
fakeredis in tests).
"""

from abc import ABC, abstractmethod


class Cache(ABC):
    """Keyed JSON documents; serialization is the implementation's concern."""

    @abstractmethod
    def get(self, key: str) -> dict | None:
        """Return the document stored under `key`, or None when absent or unreadable."""
        ...

    @abstractmethod
    def set(self, key: str, value: dict) -> None:
        """Store `value` under `key`, replacing any previous document."""
        ...

    @abstractmethod
    def get_many(self, keys: list[str]) -> dict[str, dict]:
        """
        Read several documents in one round trip.

        Keys with no stored document are left out of the result.
        """
        ...

    @abstractmethod
    def set_many(self, items: dict[str, dict]) -> None:
        """Write several documents together so readers never see half an update."""
        ...

    def close(self) -> None:
        """Release connections. No-op by default."""
