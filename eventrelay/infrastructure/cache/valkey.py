# ==============================================================================
# Valkey Preference Store
# ==============================================================================
"""
Valkey-backed preference store.

Each preference document is one JSON string key. The client built here is
shared with the Valkey queue store so a tracker holds a single connection
pool.
"""

import json
import logging

import redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from eventrelay.base import Cache
from eventrelay.utils.config import get_settings
from eventrelay.utils.retry import VALKEY_RETRIES

logger = logging.getLogger(__name__)


def get_valkey_client(url: str | None = None, socket_timeout: int = 10) -> redis.Redis:
    """
    Build a Valkey client from a URL (settings when omitted).

    Timeouts and connection drops are retried with exponential backoff
    before the error reaches the caller.
    """
    backoff = Retry(ExponentialBackoff(cap=8, base=1), retries=VALKEY_RETRIES)
    return redis.from_url(
        url or get_settings().valkey.url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
        retry=backoff,
        retry_on_error=[RedisTimeoutError, RedisConnectionError],
        health_check_interval=30,
    )


def _decode(key: str, raw: str | None) -> dict | None:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring unreadable preference %s", key)
        return None


class ValkeyCache(Cache):
    """Preference documents stored as JSON strings in Valkey."""

    def __init__(self, client: redis.Redis | None = None, url: str | None = None):
        self._client = client or get_valkey_client(url)

    def get(self, key: str) -> dict | None:
        return _decode(key, self._client.get(key))

    def set(self, key: str, value: dict) -> None:
        self._client.set(key, json.dumps(value))

    def get_many(self, keys: list[str]) -> dict[str, dict]:
        if not keys:
            return {}
        found = {}
        for key, raw in zip(keys, self._client.mget(keys)):
            document = _decode(key, raw)
            if document is not None:
                found[key] = document
        return found

    def set_many(self, items: dict[str, dict]) -> None:
        if not items:
            return
        self._client.mset({key: json.dumps(value) for key, value in items.items()})

    def close(self) -> None:
        self._client.close()
