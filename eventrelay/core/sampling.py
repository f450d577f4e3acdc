# ==============================================================================
# Sampling & Opt-Out Gate
# ==============================================================================
"""
Per-event admission decision.

Runs before identity stamping, so sampled-out events never count as session
activity. Decisions are independent per event.
"""

import logging
import random
import threading

from eventrelay.base.cache import Cache

logger = logging.getLogger(__name__)


class SamplingGate:
    """
    Decides whether an event should be queued at all.

    The opt-out flag is persisted in the cache under `{prefix}:opt_out` and
    is retained across restarts.
    """

    def __init__(
        self,
        cache: Cache,
        sample_rate: int = 100,
        key_prefix: str = "eventrelay",
        rng: random.Random | None = None,
    ):
        """
        Args:
            cache: Durable preference storage for the opt-out flag
            sample_rate: Percentage of events to keep, 0..100
            key_prefix: Namespace for the opt-out key
            rng: Random source (injectable for deterministic tests)
        """
        self._cache = cache
        self._opt_out_key = f"{key_prefix}:opt_out"
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._opt_out: bool | None = None
        self.sample_rate = sample_rate

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @sample_rate.setter
    def sample_rate(self, value: int) -> None:
        if not 0 <= value <= 100:
            raise ValueError(f"sample_rate must be between 0 and 100, got {value}")
        self._sample_rate = int(value)

    @property
    def opt_out(self) -> bool:
        """Whether the user opted out of tracking (persisted)."""
        if self._opt_out is None:
            stored = self._cache.get(self._opt_out_key)
            self._opt_out = bool(stored and stored.get("opt_out"))
        return self._opt_out

    @opt_out.setter
    def opt_out(self, value: bool) -> None:
        self._cache.set(self._opt_out_key, {"opt_out": bool(value)})
        self._opt_out = bool(value)
        logger.info("Tracking opt-out set to %s", self._opt_out)

    def should_enqueue(self) -> bool:
        """Return True if the next event should be queued."""
        if self.opt_out:
            return False
        if self._sample_rate >= 100:
            return True
        if self._sample_rate <= 0:
            return False
        with self._lock:
            draw = self._rng.uniform(0, 100)
        return draw < self._sample_rate
