# ==============================================================================
# Cache Infrastructure
# ==============================================================================
"""
Cache implementations for durable tracker preferences.

Available implementations:
- ValkeyCache: Valkey-backed preference store (JSON documents)
"""

from eventrelay.infrastructure.cache.valkey import ValkeyCache, get_valkey_client

__all__ = [
    "ValkeyCache",
    "get_valkey_client",
]
