"""Transport implementations."""

from eventrelay.infrastructure.transport.http import HttpTransport

__all__ = ["HttpTransport"]
