# ==============================================================================
# Transport Abstract Base Class
# ==============================================================================
"""
Abstract interface for delivering encoded tracking requests.

A transport executes one request and either returns normally (the server
accepted it) or raises TransportError. Connection handling, TLS, proxies and
request timeouts all live behind this interface.
"""

from abc import ABC, abstractmethod

from eventrelay.core.encoding import TrackingRequest


class TransportError(Exception):
    """Request could not be delivered (connection error, timeout, bad status)."""


class MalformedResponseError(TransportError):
    """Server answered, but not in the shape the tracker expects."""


class Transport(ABC):
    """Delivers tracking requests to the collection endpoint."""

    @abstractmethod
    def send(self, request: TrackingRequest) -> None:
        """
        Send one request.

        Args:
            request: Encoded single or bulk request

        Raises:
            TransportError: If the request was not accepted
        """
        ...

    def close(self) -> None:
        """Release connections."""
