# ==============================================================================
# HTTP Transport
# ==============================================================================
"""
requests-based implementation of the Transport interface.

- Single requests: GET {base_url}/piwik.php?{params}
- Bulk requests:   POST {base_url}/piwik.php with the encoded body

Connection errors and timeouts are retried briefly with tenacity before
being surfaced as TransportError. Bulk responses must be JSON with
"status": "success"; anything else raises MalformedResponseError.
"""

import logging

import requests

from eventrelay.base.transport import MalformedResponseError, Transport, TransportError
from eventrelay.core.encoding import BulkRequest, SingleRequest, TrackingRequest
from eventrelay.utils.retry import (
    REQUEST_ATTEMPTS,
    REQUEST_BACKOFF_MAX,
    REQUEST_BACKOFF_MIN,
    retry_light,
)
from eventrelay.utils.versions import get_user_agent

logger = logging.getLogger(__name__)

HTTP_RETRY_EXCEPTIONS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)


class HttpTransport(Transport):
    """
    Sends tracking requests over HTTP(S).

    Args:
        tracking_url: Full endpoint URL (…/piwik.php)
        timeout: Request timeout in seconds
        session: Optional requests.Session (injectable for tests)
        retry_attempts: Attempts per request on connection errors/timeouts
        retry_wait_min: Minimum backoff between attempts in seconds
        retry_wait_max: Maximum backoff between attempts in seconds
    """

    def __init__(
        self,
        tracking_url: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
        retry_attempts: int = REQUEST_ATTEMPTS,
        retry_wait_min: float = REQUEST_BACKOFF_MIN,
        retry_wait_max: float = REQUEST_BACKOFF_MAX,
    ):
        self.tracking_url = tracking_url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", get_user_agent())
        self._execute = retry_light(
            HTTP_RETRY_EXCEPTIONS,
            logger,
            attempts=retry_attempts,
            wait_min=retry_wait_min,
            wait_max=retry_wait_max,
        )(self._execute_once)

    def send(self, request: TrackingRequest) -> None:
        try:
            response = self._execute(request)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request to {self.tracking_url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"Server rejected request with status {response.status_code}"
            )

        if isinstance(request, BulkRequest):
            self._check_bulk_response(response, request)

        logger.debug(
            "Delivered %d events (status %d)", len(request.sequences), response.status_code
        )

    def _execute_once(self, request: TrackingRequest) -> requests.Response:
        if isinstance(request, SingleRequest):
            return self._session.get(self.tracking_url, params=request.params, timeout=self.timeout)
        return self._session.post(
            self.tracking_url,
            data=request.body.encode("utf-8"),
            headers={"Content-Type": request.content_type},
            timeout=self.timeout,
        )

    @staticmethod
    def _check_bulk_response(response: requests.Response, request: BulkRequest) -> None:
        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Bulk response is not JSON: {e}") from e

        if not isinstance(body, dict) or body.get("status") != "success":
            raise MalformedResponseError(f"Unexpected bulk response: {body!r}")

        tracked = body.get("tracked")
        if tracked is not None and tracked != request.size:
            logger.warning("Server tracked %s of %d bulk events", tracked, request.size)

    def close(self) -> None:
        self._session.close()
