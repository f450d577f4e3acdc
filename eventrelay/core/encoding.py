# ==============================================================================
# Hit Encoding
# ==============================================================================
"""
Turns queued records into Piwik tracking API requests.

Two request shapes exist:
- SingleRequest: one event as GET query parameters
- BulkRequest: several events in one POST body, authenticated with the
  token. The body layout depends on the server generation (BulkEncoding).

All functions here are pure; nothing touches the network.
"""

import json
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from urllib.parse import quote, urlencode

from eventrelay.core.models import QueueRecord, TrackedEvent

# Separator for hierarchical action names (screen/settings/register)
PATH_SEPARATOR = "/"

API_VERSION = "1"


class BulkEncoding(str, Enum):
    """Bulk request body layout."""

    CURRENT = "current"  # Piwik 2.x and later
    LEGACY = "legacy"  # Piwik 1.x


@dataclass(frozen=True)
class SingleRequest:
    """One event sent as query parameters."""

    params: dict[str, str]
    sequences: tuple[int, ...]


@dataclass(frozen=True)
class BulkRequest:
    """Several events sent in one POST body."""

    body: str
    content_type: str
    sequences: tuple[int, ...]
    size: int = field(default=0)


TrackingRequest = SingleRequest | BulkRequest


def join_path(segments: list[str] | tuple[str, ...]) -> str:
    """Join hierarchical name segments, skipping empty ones."""
    return PATH_SEPARATOR.join(str(s) for s in segments if s not in (None, ""))


def _unix_seconds(value: datetime | None) -> str | None:
    if value is None:
        return None
    return str(int(value.timestamp()))


class HitEncoder:
    """
    Encodes TrackedEvents with the site-level parameters of one tracker.

    Args:
        site_id: Site id on the analytics server
        app_name: Application name, used as host of the synthetic page URL
        authentication_token: Token for bulk requests and custom timestamps
        screen_resolution: Optional "WxH" string sent as `res`
        bulk_encoding: Bulk body layout
        rng: Random source for the cache-busting `rand` parameter
    """

    def __init__(
        self,
        site_id: str,
        app_name: str,
        authentication_token: str | None = None,
        screen_resolution: str | None = None,
        bulk_encoding: BulkEncoding = BulkEncoding.CURRENT,
        rng: random.Random | None = None,
    ):
        self.site_id = site_id
        self.app_name = app_name
        self.authentication_token = authentication_token
        self.screen_resolution = screen_resolution
        self.bulk_encoding = BulkEncoding(bulk_encoding)
        self._rng = rng or random.Random()

    @property
    def supports_bulk(self) -> bool:
        """Bulk requests are only accepted with an authentication token."""
        return bool(self.authentication_token)

    def encode_hit(self, event: TrackedEvent) -> dict[str, str]:
        """
        Build the tracking parameters for one event.

        Returns:
            Ordered dict of wire parameter name to value
        """
        params: dict[str, str] = {
            "idsite": self.site_id,
            "rec": "1",
            "apiv": API_VERSION,
            "rand": str(self._rng.randint(0, 2**31 - 1)),
            "_id": event.visitor_id,
            "url": self._page_url(event),
            "_idvc": str(event.visit_count),
        }

        first_visit = _unix_seconds(event.first_visit_at)
        if first_visit:
            params["_idts"] = first_visit
        previous_visit = _unix_seconds(event.previous_visit_at)
        if previous_visit:
            params["_viewts"] = previous_visit

        if event.new_session:
            params["new_visit"] = "1"

        local_time = event.timestamp.astimezone()
        params["h"] = str(local_time.hour)
        params["m"] = str(local_time.minute)
        params["s"] = str(local_time.second)

        if self.screen_resolution:
            params["res"] = self.screen_resolution

        if event.custom_variables:
            params["_cvar"] = json.dumps(
                {
                    str(index): [var.name, var.value]
                    for index, var in sorted(event.custom_variables.items())
                },
                separators=(",", ":"),
            )

        if event.latitude is not None and event.longitude is not None:
            params["lat"] = f"{event.latitude:.6f}"
            params["long"] = f"{event.longitude:.6f}"

        params.update(event.fields)

        # Backdating (cdt) is only honoured by the server for authenticated hits
        if self.authentication_token:
            params["cdt"] = event.timestamp.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
            params["token_auth"] = self.authentication_token

        return params

    def single(self, record: QueueRecord) -> SingleRequest:
        """Encode one record as a single-event request."""
        return SingleRequest(params=self.encode_hit(record.event), sequences=(record.sequence,))

    def bulk(self, records: list[QueueRecord]) -> BulkRequest:
        """
        Encode several records as one bulk request.

        Raises:
            ValueError: If no authentication token is configured
        """
        if not self.supports_bulk:
            raise ValueError("Bulk requests require an authentication token")

        queries = ["?" + urlencode(self.encode_hit(r.event)) for r in records]
        sequences = tuple(r.sequence for r in records)

        if self.bulk_encoding is BulkEncoding.LEGACY:
            body = json.dumps(
                {
                    "requests": [quote(q, safe="") for q in queries],
                    "token_auth": self.authentication_token,
                }
            )
            content_type = "application/x-www-form-urlencoded; charset=utf-8"
        else:
            body = json.dumps({"requests": queries, "token_auth": self.authentication_token})
            content_type = "application/json; charset=utf-8"

        return BulkRequest(
            body=body, content_type=content_type, sequences=sequences, size=len(records)
        )

    def _page_url(self, event: TrackedEvent) -> str:
        action = event.fields.get("action_name")
        if action:
            return f"http://{self.app_name}/{action}"
        return f"http://{self.app_name}"
