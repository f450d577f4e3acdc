# ==============================================================================
# Tracker Factory
# ==============================================================================
"""
Factory function for building a Tracker from settings.

The queue store is selected by the STORAGE_BACKEND setting; preferences
always live in Valkey.
"""

import logging

from eventrelay.base.queue_store import QueueStore
from eventrelay.tracker import LocationProvider, Tracker
from eventrelay.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


def create_queue_store(settings: Settings, valkey_client=None) -> QueueStore:
    """
    Build the queue store selected by STORAGE_BACKEND.

    - "valkey" (default): ValkeyQueueStore sharing the preference client
    - "postgresql": PostgreSQLQueueStore (connects and ensures the table)

    Raises:
        ValueError: If an unknown backend is specified
    """
    backend = settings.storage.backend
    max_queued = settings.dispatch.max_queued_events

    match backend:
        case "valkey":
            from eventrelay.infrastructure.cache import get_valkey_client
            from eventrelay.infrastructure.queue import ValkeyQueueStore

            return ValkeyQueueStore(
                valkey_client or get_valkey_client(settings.valkey.url),
                max_queued_events=max_queued,
                key_prefix=settings.storage.key_prefix,
            )
        case "postgresql":
            from eventrelay.infrastructure.queue import PostgreSQLQueueStore

            store = PostgreSQLQueueStore(settings, max_queued_events=max_queued)
            store.connect()
            store.ensure_schema()
            return store
        case _:
            raise ValueError(
                f"Unknown storage backend: '{backend}'.\nValid options are: valkey, postgresql"
            )


def create_tracker(
    settings: Settings | None = None,
    location_provider: LocationProvider | None = None,
    start: bool = True,
) -> Tracker:
    """
    Build a Tracker wired to the configured store, cache and transport.

    Args:
        settings: Application settings. If None, uses get_settings().
        location_provider: Optional (latitude, longitude) source
        start: Arm the dispatch timer immediately

    Example:
        >>> from eventrelay.factory import create_tracker
        >>> tracker = create_tracker()
        >>> tracker.send_view("home")
        True
    """
    from eventrelay.infrastructure.cache import ValkeyCache, get_valkey_client
    from eventrelay.infrastructure.transport import HttpTransport

    settings = settings or get_settings()

    client = get_valkey_client(settings.valkey.url)
    cache = ValkeyCache(client=client)
    store = create_queue_store(settings, valkey_client=client)
    transport = HttpTransport(
        settings.tracker.tracking_url, timeout=settings.dispatch.request_timeout
    )

    logger.debug("Creating tracker with %s queue store", settings.storage.backend)

    return Tracker(
        store=store,
        cache=cache,
        transport=transport,
        settings=settings.tracker,
        dispatch_settings=settings.dispatch,
        location_provider=location_provider,
        key_prefix=settings.storage.key_prefix,
        start=start,
    )
