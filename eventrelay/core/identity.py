# ==============================================================================
# Identity Manager
# ==============================================================================
"""
Visitor and session identity for the tracker.

This module decides:
- The durable visitor id (created once per installation)
- Session rollover (explicit restart, first use, inactivity timeout)
- Visit bookkeeping (visit count, first and previous visit start)

State is persisted through the Cache interface so a process restart within
the session timeout continues the same session, and the visitor id survives
upgrades. Wiping the cache storage produces a new visitor, which is the
expected behaviour after a reinstall.
"""

import logging
import secrets
import threading
import uuid
from datetime import datetime

from eventrelay.base.cache import Cache
from eventrelay.core.models import Session, SessionStamp, VisitState

logger = logging.getLogger(__name__)

# Visitor ids are 16 hexadecimal characters
VISITOR_ID_BYTES = 8


class IdentityManager:
    """
    Owns the visitor id and the current session.

    Cache layout (under `key_prefix`):
        {prefix}:visitor  -> {"visitor_id": str}
        {prefix}:session  -> Session as JSON
        {prefix}:visit    -> VisitState as JSON
    """

    def __init__(self, cache: Cache, key_prefix: str = "eventrelay"):
        self._cache = cache
        self._visitor_key = f"{key_prefix}:visitor"
        self._session_key = f"{key_prefix}:session"
        self._visit_key = f"{key_prefix}:visit"
        self._lock = threading.Lock()
        self._visitor_id: str | None = None

    # ==========================================================================
    # Visitor
    # ==========================================================================

    def current_visitor_id(self) -> str:
        """Return the visitor id, generating and persisting one if absent."""
        with self._lock:
            return self._load_or_create_visitor_id()

    def _load_or_create_visitor_id(self) -> str:
        if self._visitor_id is not None:
            return self._visitor_id

        stored = self._cache.get(self._visitor_key)
        if stored and stored.get("visitor_id"):
            self._visitor_id = stored["visitor_id"]
        else:
            self._visitor_id = secrets.token_hex(VISITOR_ID_BYTES)
            self._cache.set(self._visitor_key, {"visitor_id": self._visitor_id})
            logger.info("Generated new visitor id %s", self._visitor_id)
        return self._visitor_id

    # ==========================================================================
    # Session
    # ==========================================================================

    def current_session_id(self, now: datetime, timeout: float, force_restart: bool = False) -> str:
        """
        Return the active session id, rolling over when required.

        Args:
            now: Time of the event being tracked
            timeout: Inactivity timeout in seconds
            force_restart: Start a new session regardless of activity

        Returns:
            Session id to stamp on the event
        """
        return self.current_session(now, timeout, force_restart).session_id

    def current_session(
        self, now: datetime, timeout: float, force_restart: bool = False
    ) -> SessionStamp:
        """Resolve identity for an event at `now` and persist the result."""
        with self._lock:
            stamp = self._resolve(now, timeout, force_restart)
            self._save(stamp)
            return stamp

    def resolve_session(
        self, now: datetime, timeout: float, force_restart: bool = False
    ) -> SessionStamp:
        """
        Resolve visitor and session identity for an event at `now` without
        persisting it.

        A new session is created when `force_restart` is set, when no session
        exists, or when `now - last_activity > timeout`. Otherwise the
        existing session's last activity is advanced to `now`. Callers pass
        the stamp to `commit_session` once the event has been accepted, so a
        rejected event leaves the stored session untouched.

        Returns:
            SessionStamp with the ids and visit bookkeeping for the event
        """
        with self._lock:
            return self._resolve(now, timeout, force_restart)

    def commit_session(self, stamp: SessionStamp) -> None:
        """Persist the session and visit state carried by `stamp`."""
        with self._lock:
            self._save(stamp)

    def _resolve(self, now: datetime, timeout: float, force_restart: bool) -> SessionStamp:
        visitor_id = self._load_or_create_visitor_id()
        stored = self._cache.get_many([self._session_key, self._visit_key])

        session = Session.model_validate(stored[self._session_key]) if (
            self._session_key in stored
        ) else None
        visit = VisitState.model_validate(stored.get(self._visit_key, {}))

        is_new = force_restart or session is None or session.is_expired(now, timeout)
        if is_new:
            session = Session(
                session_id=uuid.uuid4().hex,
                started_at=now,
                last_activity=now,
                timeout=timeout,
            )
            visit = VisitState(
                visit_count=visit.visit_count + 1,
                first_visit_at=visit.first_visit_at or now,
                previous_visit_at=visit.current_visit_at,
                current_visit_at=now,
            )
        else:
            session = session.model_copy(update={"last_activity": now, "timeout": timeout})

        return SessionStamp(
            visitor_id=visitor_id,
            session_id=session.session_id,
            is_new_session=is_new,
            visit=visit,
            session=session,
        )

    def _save(self, stamp: SessionStamp) -> None:
        if stamp.is_new_session:
            logger.debug(
                "Started session %s (visit %d)", stamp.session_id, stamp.visit.visit_count
            )
        self._cache.set_many(
            {
                self._session_key: stamp.session.model_dump(mode="json"),
                self._visit_key: stamp.visit.model_dump(mode="json"),
            }
        )
