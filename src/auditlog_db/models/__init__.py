"""Data models for auditlog_db."""

from __future__ import annotations

__all__ = [
    # ORM models
    "Event",
    "EventContextRow",
    # Initiator variant
    "Anonymous",
    "Authenticated",
    "Automation",
    "Initiator",
    "Unknown",
    "describe_initiator",
    # Schemas
    "ActorRef",
    "CaptureRequest",
    "DateRange",
    "EventFilter",
    "EventResponse",
    "MessageType",
    "build_filter",
]

from .initiator import (
    Anonymous,
    Authenticated,
    Automation,
    Initiator,
    Unknown,
    describe_initiator,
)
from .orm import Event, EventContextRow
from .schemas import (
    ActorRef,
    CaptureRequest,
    DateRange,
    EventFilter,
    EventResponse,
    MessageType,
    build_filter,
)
