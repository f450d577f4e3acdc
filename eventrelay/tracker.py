# ==============================================================================
# Tracker
# ==============================================================================
"""
The tracker context object.

A Tracker is constructed once by the host application and passed to the
code that tracks events. It wires together:

    SamplingGate → IdentityManager → QueueStore      (tracking calls)
    DispatchScheduler → BatchDispatcher → Transport  (background delivery)

Tracking calls return True when the event was durably queued and False when
it was rejected (opt-out, sampling, full queue). They never wait for the
network; delivery happens on the scheduler's worker thread.

Usage:
    tracker = create_tracker()
    tracker.send_view(["settings", "register"])
    tracker.send_event("video", "play", label="intro")
    tracker.dispatch()
    tracker.close()
"""

import logging
import threading
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from eventrelay.base.cache import Cache
from eventrelay.base.queue_store import QueueStore
from eventrelay.base.transport import Transport
from eventrelay.core.dispatcher import BatchDispatcher, DispatchResult, DrainPolicy
from eventrelay.core.encoding import BulkEncoding, HitEncoder, join_path
from eventrelay.core.identity import IdentityManager
from eventrelay.core.models import (
    APP_NAME_VARIABLE_INDEX,
    APP_VERSION_VARIABLE_INDEX,
    PLATFORM_VARIABLE_INDEX,
    CustomVariable,
    EventKind,
    EventPayload,
    QueueRecord,
    TrackedEvent,
)
from eventrelay.core.sampling import SamplingGate
from eventrelay.core.scheduler import DispatchScheduler
from eventrelay.utils.config import DispatchSettings, TrackerSettings

logger = logging.getLogger(__name__)

# Name prefixes used when prefixing is enabled
SCREEN_PREFIX = "screen"
EVENT_PREFIX = "event"
EXCEPTION_PREFIX = "exception"
SOCIAL_PREFIX = "social"

MAX_EXCEPTION_DESCRIPTION = 50

LocationProvider = Callable[[], tuple[float, float] | None]


class TrackerConfigurationError(ValueError):
    """Invalid tracker configuration."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Tracker:
    """
    Buffers analytics events and forwards them to the collection endpoint.

    Args:
        store: Durable queue store
        cache: Durable preference storage (visitor id, opt-out, session)
        transport: Delivers encoded requests
        settings: Tracker settings (identity, sampling, sessions, encoding)
        dispatch_settings: Dispatch interval and batching settings
        location_provider: Returns (latitude, longitude) or None
        key_prefix: Namespace for preference keys
        clock: Returns the current UTC time (injectable for tests)
        rng: Random source for sampling (injectable for tests)
        start: Arm the dispatch timer immediately
    """

    def __init__(
        self,
        store: QueueStore,
        cache: Cache,
        transport: Transport,
        settings: TrackerSettings | None = None,
        dispatch_settings: DispatchSettings | None = None,
        location_provider: LocationProvider | None = None,
        key_prefix: str = "eventrelay",
        clock: Callable[[], datetime] = _utc_now,
        rng=None,
        start: bool = True,
    ):
        settings = settings or TrackerSettings()
        dispatch_settings = dispatch_settings or DispatchSettings()

        if not settings.base_url:
            raise TrackerConfigurationError("base_url is required")

        self._store = store
        self._transport = transport
        self._clock = clock
        self._location_provider = location_provider
        self._lock = threading.Lock()
        # Held from session resolution until the stamped event is queued
        self._stamp_lock = threading.Lock()
        self._used = False

        self.site_id = settings.site_id
        self.authentication_token = settings.authentication_token
        self.is_prefixing_enabled = settings.is_prefixing_enabled
        self.session_timeout = settings.session_timeout
        self.app_name = settings.app_name
        self.app_version = settings.app_version
        self.platform = settings.platform
        self._include_location = settings.include_location_information
        self._session_start = settings.session_start_on_launch

        self._store.max_queued_events = dispatch_settings.max_queued_events

        self._identity = IdentityManager(cache, key_prefix=key_prefix)
        try:
            self._gate = SamplingGate(
                cache, sample_rate=settings.sample_rate, key_prefix=key_prefix, rng=rng
            )
        except ValueError as e:
            raise TrackerConfigurationError(str(e)) from e

        self._encoder = HitEncoder(
            site_id=settings.site_id,
            app_name=settings.app_name,
            authentication_token=settings.authentication_token,
            screen_resolution=settings.screen_resolution,
            bulk_encoding=BulkEncoding(settings.bulk_encoding),
        )
        self._dispatcher = BatchDispatcher(
            store,
            transport,
            self._encoder,
            events_per_request=dispatch_settings.events_per_request,
            debug=settings.debug,
            drain_policy=DrainPolicy(dispatch_settings.drain_policy),
            max_batches_per_cycle=dispatch_settings.max_batches_per_cycle,
        )
        self._scheduler = DispatchScheduler(
            self._dispatcher.run_cycle, interval=dispatch_settings.interval
        )
        if start:
            self._scheduler.start()

        logger.info(
            "Tracker created (site=%s, interval=%.0fs, max_queued=%d, per_request=%d, debug=%s)",
            self.site_id,
            dispatch_settings.interval,
            dispatch_settings.max_queued_events,
            dispatch_settings.events_per_request,
            settings.debug,
        )

    # ==========================================================================
    # Configuration
    # ==========================================================================

    @property
    def visitor_id(self) -> str:
        """Durable per-installation visitor id."""
        return self._identity.current_visitor_id()

    @property
    def opt_out(self) -> bool:
        return self._gate.opt_out

    @opt_out.setter
    def opt_out(self, value: bool) -> None:
        self._gate.opt_out = value

    @property
    def sample_rate(self) -> int:
        return self._gate.sample_rate

    @sample_rate.setter
    def sample_rate(self, value: int) -> None:
        try:
            self._gate.sample_rate = value
        except ValueError as e:
            raise TrackerConfigurationError(str(e)) from e

    @property
    def debug(self) -> bool:
        return self._dispatcher.debug

    @debug.setter
    def debug(self, value: bool) -> None:
        self._dispatcher.debug = bool(value)

    @property
    def session_start(self) -> bool:
        """One-shot flag: the next queued event starts a new session."""
        return self._session_start

    @session_start.setter
    def session_start(self, value: bool) -> None:
        with self._lock:
            self._session_start = bool(value)

    @property
    def include_location_information(self) -> bool:
        return self._include_location

    @include_location_information.setter
    def include_location_information(self, value: bool) -> None:
        with self._lock:
            if self._used:
                raise TrackerConfigurationError(
                    "include_location_information must be set before the first event is tracked"
                )
            self._include_location = bool(value)

    @property
    def dispatch_interval(self) -> float:
        return self._scheduler.interval

    @dispatch_interval.setter
    def dispatch_interval(self, value: float) -> None:
        self._scheduler.configure(value)

    @property
    def max_number_of_queued_events(self) -> int:
        return self._store.max_queued_events

    @max_number_of_queued_events.setter
    def max_number_of_queued_events(self, value: int) -> None:
        if value < 0:
            raise TrackerConfigurationError("max_number_of_queued_events must not be negative")
        self._store.max_queued_events = value

    @property
    def events_per_request(self) -> int:
        return self._dispatcher.events_per_request

    @events_per_request.setter
    def events_per_request(self, value: int) -> None:
        if value < 1:
            raise TrackerConfigurationError("events_per_request must be positive")
        self._dispatcher.events_per_request = value

    # ==========================================================================
    # Tracking calls
    # ==========================================================================

    def send_view(self, screen: str | Sequence[str]) -> bool:
        """
        Track a screen view.

        Args:
            screen: Screen name, or the ordered path segments of a
                hierarchical screen name (["settings", "register"])

        Returns:
            True if the event was queued
        """
        segments = [screen] if isinstance(screen, str) else list(screen)
        if not segments:
            raise ValueError("send_view requires at least one screen name")
        return self._queue(
            EventKind.SCREEN, {"action_name": self._action_name(SCREEN_PREFIX, segments)}
        )

    def send_views(self, *segments: str) -> bool:
        """Track a hierarchical screen view given as positional segments."""
        return self.send_view(list(segments))

    def send_event(
        self,
        category: str,
        action: str,
        label: str | None = None,
        value: float | None = None,
    ) -> bool:
        """
        Track an event as the hierarchical name category/action/label.

        A numeric value, when given, is sent as `e_v`.
        """
        fields = {"action_name": self._action_name(EVENT_PREFIX, [category, action, label])}
        if value is not None:
            fields["e_v"] = f"{value:g}"
        return self._queue(EventKind.EVENT, fields)

    def send_exception(self, description: str, is_fatal: bool = False) -> bool:
        """Track a caught exception. The description is cut to 50 characters."""
        description = description[:MAX_EXCEPTION_DESCRIPTION]
        severity = "fatal" if is_fatal else "caught"
        return self._queue(
            EventKind.EXCEPTION,
            {"action_name": self._action_name(EXCEPTION_PREFIX, [severity, description])},
        )

    def send_social_interaction(self, action: str, target: str, network: str) -> bool:
        """Track an interaction with a social network (like, tweet, ...)."""
        return self._queue(
            EventKind.SOCIAL,
            {"action_name": self._action_name(SOCIAL_PREFIX, [network, action, target])},
        )

    def send_goal(self, goal_id: str, revenue: int = 0) -> bool:
        """Track a goal conversion."""
        return self._queue(EventKind.GOAL, {"idgoal": str(goal_id), "revenue": str(revenue)})

    def send_search(
        self,
        keyword: str,
        category: str | None = None,
        number_of_hits: int | None = None,
    ) -> bool:
        """Track a site search."""
        fields = {"search": keyword}
        if category:
            fields["search_cat"] = category
        if number_of_hits is not None:
            fields["search_count"] = str(number_of_hits)
        return self._queue(EventKind.SEARCH, fields)

    def track(self, payload: EventPayload) -> bool:
        """Queue a prebuilt event payload."""
        return self._enqueue(payload)

    def _action_name(self, prefix: str, segments: list[str | None]) -> str:
        if self.is_prefixing_enabled:
            return join_path([prefix, *segments])
        return join_path(segments)

    def _queue(self, kind: EventKind, fields: dict[str, str]) -> bool:
        return self._enqueue(EventPayload(kind=kind, fields=fields, timestamp=self._clock()))

    def _enqueue(self, payload: EventPayload) -> bool:
        if not self._gate.should_enqueue():
            logger.debug("Event %s not queued (opt-out or sampled out)", payload.kind.value)
            return False

        with self._lock:
            force_restart = self._session_start
            self._session_start = False
            self._used = True
            include_location = self._include_location

        try:
            with self._stamp_lock:
                stamp = self._identity.resolve_session(
                    payload.timestamp, self.session_timeout, force_restart
                )
                latitude, longitude = self._location() if include_location else (None, None)
                event = TrackedEvent(
                    timestamp=payload.timestamp,
                    visitor_id=stamp.visitor_id,
                    session_id=stamp.session_id,
                    kind=payload.kind,
                    fields=payload.fields,
                    custom_variables=self._custom_variables(),
                    new_session=stamp.is_new_session,
                    visit_count=stamp.visit.visit_count,
                    first_visit_at=stamp.visit.first_visit_at,
                    previous_visit_at=stamp.visit.previous_visit_at,
                    latitude=latitude,
                    longitude=longitude,
                )
                accepted = self._store.enqueue(event)
                if accepted:
                    self._identity.commit_session(stamp)
        except Exception as e:
            logger.exception("Failed to queue %s event: %s", payload.kind.value, e)
            accepted = False

        if not accepted:
            if force_restart:
                with self._lock:
                    self._session_start = True
            return False

        self._scheduler.notify_enqueued()
        return True

    def _custom_variables(self) -> dict[int, CustomVariable]:
        variables = {
            APP_NAME_VARIABLE_INDEX: CustomVariable(name="App name", value=self.app_name),
            APP_VERSION_VARIABLE_INDEX: CustomVariable(name="App version", value=self.app_version),
        }
        if self.platform:
            variables[PLATFORM_VARIABLE_INDEX] = CustomVariable(
                name="Platform", value=self.platform
            )
        return variables

    def _location(self) -> tuple[float | None, float | None]:
        if self._location_provider is None:
            return None, None
        position = self._location_provider()
        if position is None:
            return None, None
        return position

    # ==========================================================================
    # Dispatch control
    # ==========================================================================

    def dispatch(self) -> bool:
        """
        Start a dispatch cycle in the background.

        Returns:
            True if a cycle was started, False if one is already running
        """
        return self._scheduler.request_dispatch()

    def wait_for_dispatch(self, timeout: float | None = None) -> bool:
        """Block until no dispatch cycle is in flight."""
        return self._scheduler.wait_idle(timeout)

    def delete_queued_events(self) -> int:
        """Delete all pending events."""
        return self._store.clear()

    def queued_event_count(self) -> int:
        return self._store.count()

    def peek_queued_events(self, limit: int) -> list[QueueRecord]:
        """Return up to `limit` of the oldest queued events without removing them."""
        return self._store.peek_batch(limit)

    @property
    def last_dispatch_result(self) -> DispatchResult | None:
        """Outcome of the most recent completed dispatch cycle."""
        return self._dispatcher.last_result

    @property
    def scheduler(self) -> DispatchScheduler:
        return self._scheduler

    # ==========================================================================
    # Shutdown
    # ==========================================================================

    def close(self, wait: bool = True) -> None:
        """
        Stop the dispatch timer and release resources.

        Args:
            wait: Let an in-flight dispatch cycle finish first
        """
        self._scheduler.shutdown(wait=wait)
        self._dispatcher.log_final_summary()
        self._transport.close()
        self._store.close()

    def __enter__(self) -> "Tracker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
