# ==============================================================================
# Core Domain Logic
# ==============================================================================
"""
Tracker domain logic.

This module contains:
- Domain models (TrackedEvent, QueueRecord, Session, EventKind)
- Identity and session rollover (IdentityManager)
- Sampling and opt-out gating (SamplingGate)
- Tracking API encoding (HitEncoder)

The dispatch engine (dispatcher.py, scheduler.py) is imported from its own
modules since it depends on the base collaborator interfaces.
"""

from eventrelay.core.encoding import BulkEncoding, BulkRequest, HitEncoder, SingleRequest
from eventrelay.core.identity import IdentityManager
from eventrelay.core.models import (
    CustomVariable,
    EventKind,
    EventPayload,
    QueueRecord,
    Session,
    SessionStamp,
    TrackedEvent,
    VisitState,
)
from eventrelay.core.sampling import SamplingGate

__all__ = [
    "BulkEncoding",
    "BulkRequest",
    "CustomVariable",
    "EventKind",
    "EventPayload",
    "HitEncoder",
    "IdentityManager",
    "QueueRecord",
    "SamplingGate",
    "Session",
    "SessionStamp",
    "SingleRequest",
    "TrackedEvent",
    "VisitState",
]
