# ==============================================================================
# Dispatch Scheduler
# ==============================================================================
"""
Decides when a dispatch cycle may start and keeps cycles from overlapping.

States:
    IDLE         no timer running (manual-only, or not started)
    ARMED        periodic timer waiting for its next tick
    DISPATCHING  a cycle is running on the background worker

Interval semantics:
    interval < 0   manual dispatch only, the timer is never armed
    interval == 0  a cycle is requested right after every successful enqueue
    interval > 0   periodic ticks, re-armed from the end of the previous cycle

Cycles run on a single worker thread, never on the caller's thread. A
request made while a cycle is in flight is rejected (returns False) rather
than queued.
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from enum import Enum

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    DISPATCHING = "dispatching"


class DispatchScheduler:
    """
    Owns the repeating timer and the manual-trigger entry point.

    Args:
        run_cycle: Callable running one dispatch cycle
        interval: Seconds between cycles (see module docstring)
    """

    def __init__(self, run_cycle: Callable[[], object], interval: float = 120.0):
        self._run_cycle = run_cycle
        self._interval = float(interval)
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="eventrelay-dispatch")
        self._timer: threading.Timer | None = None
        self._timer_generation = 0
        self._dispatching = False
        self._pending = False
        self._started = False
        self._closed = False
        self._idle = threading.Event()
        self._idle.set()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def interval(self) -> float:
        return self._interval

    def configure(self, interval: float) -> None:
        """Change the dispatch interval. Re-arms the timer from now."""
        with self._lock:
            self._interval = float(interval)
            self._cancel_timer_locked()
            if self._started and not self._dispatching:
                self._arm_locked()
        logger.debug("Dispatch interval set to %.1fs", self._interval)

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            if self._dispatching:
                return SchedulerState.DISPATCHING
            if self._timer is not None:
                return SchedulerState.ARMED
            return SchedulerState.IDLE

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Arm the periodic timer (no-op for manual and immediate modes)."""
        with self._lock:
            self._started = True
            self._arm_locked()

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop the timer and the worker.

        Args:
            wait: Block until an in-flight cycle has finished
        """
        with self._lock:
            self._closed = True
            self._cancel_timer_locked()
        self._executor.shutdown(wait=wait)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """
        Block until no cycle is in flight.

        Returns:
            True if idle, False if the timeout expired first
        """
        return self._idle.wait(timeout)

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def request_dispatch(self) -> bool:
        """
        Start a cycle on the background worker.

        Returns:
            True if a cycle was started, False if one is already running
            (or the scheduler is shut down)
        """
        with self._lock:
            return self._submit_locked()

    def notify_enqueued(self) -> bool:
        """
        Called after every successful enqueue.

        Only acts in immediate mode (interval == 0). If a cycle is already
        running, one follow-up cycle is run when it ends so the new event is
        not left waiting for a manual dispatch.
        """
        with self._lock:
            if self._interval != 0 or self._closed:
                return False
            if self._dispatching:
                self._pending = True
                return False
            return self._submit_locked()

    def _submit_locked(self) -> bool:
        if self._closed or self._dispatching:
            return False
        self._dispatching = True
        self._pending = False
        self._cancel_timer_locked()
        self._idle.clear()
        self._executor.submit(self._cycle)
        return True

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._timer_generation:
                return
            self._timer = None
            started = self._submit_locked()
        if not started:
            logger.debug("Timer tick skipped, dispatch already in progress")

    def _cycle(self) -> None:
        try:
            self._run_cycle()
        except Exception as e:
            logger.exception("Dispatch cycle error: %s", e)
        finally:
            with self._lock:
                self._dispatching = False
                if self._pending and not self._closed:
                    self._submit_locked()
                else:
                    self._arm_locked()
                    self._idle.set()

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def _arm_locked(self) -> None:
        if self._closed or not self._started or self._interval <= 0 or self._timer is not None:
            return
        self._timer_generation += 1
        timer = threading.Timer(self._interval, self._on_timer, args=(self._timer_generation,))
        timer.daemon = True
        timer.start()
        self._timer = timer

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._timer_generation += 1
