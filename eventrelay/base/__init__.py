# ==============================================================================
# Base Abstract Classes
# ==============================================================================
"""
Abstract base classes defining the collaborator contracts of the tracker.

The dispatch engine only talks to these interfaces; concrete adapters live
in eventrelay.infrastructure.
"""

from eventrelay.base.cache import Cache
from eventrelay.base.queue_store import QueueStore
from eventrelay.base.transport import MalformedResponseError, Transport, TransportError

__all__ = [
    "Cache",
    "MalformedResponseError",
    "QueueStore",
    "Transport",
    "TransportError",
]
