# ==============================================================================
# Tracker Domain Models
# ==============================================================================
"""
Pydantic models for tracked events and queue records.

These models are used for:
- Stamping events with visitor/session identity before they are queued
- Serializing/deserializing queue records in the durable stores
- Type safety throughout the dispatch pipeline

This module is part of the core domain layer and has no external dependencies
beyond Pydantic.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    """Kinds of tracked events."""

    SCREEN = "screen"
    EVENT = "event"
    EXCEPTION = "exception"
    SOCIAL = "social"
    GOAL = "goal"
    SEARCH = "search"


# Fixed custom variable slots
PLATFORM_VARIABLE_INDEX = 1
APP_NAME_VARIABLE_INDEX = 2
APP_VERSION_VARIABLE_INDEX = 3
MAX_CUSTOM_VARIABLE_INDEX = 5


class CustomVariable(BaseModel):
    """A visit-scoped name/value pair bound to a fixed index."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class EventPayload(BaseModel):
    """
    What a tracking call hands to the tracker before identity is known.

    Attributes:
        kind: Event kind
        fields: Kind-specific wire parameters (action_name, idgoal, search, ...)
        timestamp: When the event happened (defaults to now, UTC)
    """

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    fields: dict[str, str] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class VisitState(BaseModel):
    """Visit bookkeeping for the current installation."""

    visit_count: int = Field(default=0, description="Number of sessions started so far")
    first_visit_at: datetime | None = Field(default=None, description="Start of the first session")
    previous_visit_at: datetime | None = Field(
        default=None, description="Start of the session before the current one"
    )
    current_visit_at: datetime | None = Field(default=None, description="Start of this session")


class Session(BaseModel):
    """
    An active session.

    A new session id is generated on an explicit restart, on first use, or
    when the gap since last activity exceeds the timeout.
    """

    session_id: str
    started_at: datetime
    last_activity: datetime
    timeout: float = Field(..., description="Inactivity timeout in seconds")

    def is_expired(self, now: datetime, timeout: float) -> bool:
        """True when more than `timeout` seconds passed since last activity."""
        return (now - self.last_activity).total_seconds() > timeout


class SessionStamp(BaseModel):
    """Identity values stamped onto an accepted event."""

    model_config = ConfigDict(frozen=True)

    visitor_id: str
    session_id: str
    is_new_session: bool
    visit: VisitState
    session: Session


class TrackedEvent(BaseModel):
    """
    An event as it is stored in the queue. Immutable once created.

    Attributes:
        timestamp: Creation time (UTC)
        visitor_id: Durable per-installation identifier
        session_id: Session identifier at the time of tracking
        kind: Event kind
        fields: Kind-specific wire parameters
        custom_variables: Visit custom variables keyed by index (1..5)
        new_session: True for the first event of a session
        visit_count: Visit number (_idvc)
        first_visit_at: First visit start (_idts)
        previous_visit_at: Previous visit start (_viewts)
        latitude: Optional device latitude
        longitude: Optional device longitude
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    visitor_id: str
    session_id: str
    kind: EventKind
    fields: dict[str, str] = Field(default_factory=dict)
    custom_variables: dict[int, CustomVariable] = Field(default_factory=dict)
    new_session: bool = False
    visit_count: int = 1
    first_visit_at: datetime | None = None
    previous_visit_at: datetime | None = None
    latitude: float | None = None
    longitude: float | None = None

    def to_store_record(self) -> dict:
        """Serialize the event for a durable store."""
        return self.model_dump(mode="json")

    @classmethod
    def from_store_record(cls, data: dict) -> "TrackedEvent":
        """Deserialize an event read back from a durable store."""
        return cls.model_validate(data)


class QueueRecord(BaseModel):
    """A queued event together with its enqueue sequence number."""

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(..., description="Monotonically increasing enqueue sequence")
    event: TrackedEvent
