# ==============================================================================
# Retry Policies
# ==============================================================================
"""
Retry policies for network calls.

Request retries stay short. A tracking request that keeps
failing is not lost, its events stay queued for the next dispatch cycle.
So the HTTP layer only rides out a blip (a reset connection, one slow
response) and then gives up.

Defaults: 3 attempts, backoff 1s then 2s (capped at 4s).
"""

import logging
from typing import Tuple, Type

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

REQUEST_ATTEMPTS = 3
REQUEST_BACKOFF_MIN = 1  # seconds
REQUEST_BACKOFF_MAX = 4  # seconds

# Passed to redis-py's own Retry helper
VALKEY_RETRIES = 3


def _warn_before_sleep(logger: logging.Logger, attempts: int):
    def before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        logger.warning(
            "Request attempt %d/%d failed, retrying: %s",
            state.attempt_number,
            attempts,
            error,
        )

    return before_sleep


def retry_light(
    exception_types: Tuple[Type[Exception], ...],
    logger: logging.Logger,
    attempts: int = REQUEST_ATTEMPTS,
    wait_min: float = REQUEST_BACKOFF_MIN,
    wait_max: float = REQUEST_BACKOFF_MAX,
):
    """
    Tenacity decorator for a single network request.

    Only `exception_types` are retried. The last error is re-raised as-is
    once `attempts` is exhausted, and every retry is logged as a warning.
    """
    return retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=wait_min, max=wait_max),
        retry=retry_if_exception_type(exception_types),
        before_sleep=_warn_before_sleep(logger, attempts),
        reraise=True,
    )
