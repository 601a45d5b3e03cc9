"""Exception types raised by auditlog_db."""

from __future__ import annotations

__all__ = [
    "AuditLogError",
    "EventNotFoundError",
    "FilterValidationError",
    "ReservedKeyError",
    "StoreError",
]


class AuditLogError(Exception):
    """Base class for all auditlog_db errors."""


class ReservedKeyError(AuditLogError, KeyError):
    """A producer tried to set an engine-reserved context key."""

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Context key {self.key!r} is reserved for the engine"


class StoreError(AuditLogError):
    """The storage layer failed to persist or read events."""


class EventNotFoundError(AuditLogError, LookupError):
    """No event exists with the requested id."""

    def __init__(self, event_id: int) -> None:
        super().__init__(event_id)
        self.event_id = event_id

    def __str__(self) -> str:
        return f"Event {self.event_id} not found"


class FilterValidationError(AuditLogError, ValueError):
    """A query filter or paging argument is malformed."""
