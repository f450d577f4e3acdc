# ==============================================================================
# eventrelay Utilities
# ==============================================================================
"""
Shared utilities for the tracker: configuration, retry policies and version
lookup.
"""

from eventrelay.utils.config import (
    DispatchSettings,
    PostgresSettings,
    Settings,
    StorageSettings,
    TrackerSettings,
    ValkeySettings,
    get_settings,
)

__all__ = [
    "DispatchSettings",
    "PostgresSettings",
    "Settings",
    "StorageSettings",
    "TrackerSettings",
    "ValkeySettings",
    "get_settings",
]
