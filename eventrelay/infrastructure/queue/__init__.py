# ==============================================================================
# Queue Store Infrastructure
# ==============================================================================
"""
Durable queue store implementations.

Available implementations:
- ValkeyQueueStore: sorted set index + payload hash
- PostgreSQLQueueStore: BIGSERIAL-ordered table
"""

from eventrelay.infrastructure.queue.postgresql import (
    PostgreSQLQueueStore,
)
from eventrelay.infrastructure.queue.valkey import ValkeyQueueStore

__all__ = [
    "PostgreSQLQueueStore",
    "ValkeyQueueStore",
]
