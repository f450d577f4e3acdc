# ==============================================================================
# Infrastructure Adapters
# ==============================================================================
"""
Adapters for external services (ports-and-adapters architecture).

This module contains concrete implementations of the base interfaces:
- cache/ - Preference storage (Valkey/Redis)
- queue/ - Durable event queue (Valkey/Redis, PostgreSQL)
- transport/ - Tracking request delivery (HTTP via requests)
"""

from eventrelay.infrastructure.cache import ValkeyCache, get_valkey_client
from eventrelay.infrastructure.queue import (
    PostgreSQLQueueStore,
    ValkeyQueueStore,
)
from eventrelay.infrastructure.transport import HttpTransport

__all__ = [
    # Cache
    "ValkeyCache",
    "get_valkey_client",
    # Queue
    "PostgreSQLQueueStore",
    "ValkeyQueueStore",
    # Transport
    "HttpTransport",
]
