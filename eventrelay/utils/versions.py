# ==============================================================================
# Version Utilities
# ==============================================================================
"""
Installed package version, used to build the tracker's User-Agent.
"""

from importlib.metadata import PackageNotFoundError, version

FALLBACK_VERSION = "0.1.0"


def get_eventrelay_version() -> str:
    # Source checkouts without an install have no distribution metadata
    try:
        return version("eventrelay")
    except PackageNotFoundError:
        return FALLBACK_VERSION


def get_user_agent() -> str:
    """User-Agent header sent with tracking requests, e.g. "eventrelay/0.1.0"."""
    return f"eventrelay/{get_eventrelay_version()}"
