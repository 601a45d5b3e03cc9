"""Pydantic schemas for query filters and CLI/API boundaries.

Filters are validated here before any storage access; response schemas are
used when exporting events (JSON listing, CSV export).

Examples
--------
>>> f = EventFilter(
...     severities=["warning", "error"],
...     message_types=[MessageType.parse("UserLogger:user_login_failed")],
... )
>>> [s.value for s in f.severities]
['warning', 'error']
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from auditlog_db.constants import InitiatorKind, MetaKey, Severity
from auditlog_db.errors import FilterValidationError
from auditlog_db.models.initiator import describe_initiator
from auditlog_db.utils import as_utc, month_bounds

if TYPE_CHECKING:
    from auditlog_db.models.orm import Event
    from auditlog_db.render.registry import MessageRegistry

__all__ = [
    # Filter schemas
    "ActorRef",
    "DateRange",
    "EventFilter",
    "MessageType",
    "build_filter",
    # Input schemas
    "CaptureRequest",
    # Response schemas
    "EventResponse",
]


# ============================================================================
# Filter Schemas
# ============================================================================


class DateRange(BaseModel):
    """
    Time restriction of a query.

    Exactly one mode may be used: explicit ``start``/``end`` (either may be
    open), ``last_days``, ``month`` (``YYYY-MM``) or ``all_time``. An empty
    range means all time.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime | None = None
    end: datetime | None = None
    last_days: int | None = Field(None, ge=1)
    month: str | None = Field(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$")
    all_time: bool = False

    @model_validator(mode="after")
    def check_single_mode(self) -> DateRange:
        modes = [
            self.start is not None or self.end is not None,
            self.last_days is not None,
            self.month is not None,
            self.all_time,
        ]
        if sum(modes) > 1:
            raise ValueError("Use only one of start/end, last_days, month or all_time")
        if self.start is not None and self.end is not None:
            if as_utc(self.start) > as_utc(self.end):
                raise ValueError("start must not be after end")
        return self

    def resolve(self, now: datetime) -> tuple[datetime | None, datetime | None]:
        """
        Return the half-open UTC interval ``[lower, upper)``.

        An explicit ``end`` is inclusive, so it is shifted by one microsecond.
        """
        if self.last_days is not None:
            return as_utc(now) - timedelta(days=self.last_days), None
        if self.month is not None:
            return month_bounds(self.month)
        lower = as_utc(self.start) if self.start is not None else None
        upper = as_utc(self.end) + timedelta(microseconds=1) if self.end is not None else None
        return lower, upper


class MessageType(BaseModel):
    """A ``(logger_slug, message_key)`` pair; no key means every key of the logger."""

    model_config = ConfigDict(frozen=True)

    logger_slug: str = Field(..., min_length=1, max_length=128)
    message_key: str | None = Field(None, min_length=1, max_length=128)

    @classmethod
    def parse(cls, value: str) -> MessageType:
        """
        Parse ``Logger`` or ``Logger:message_key``.

        Examples
        --------
        >>> MessageType.parse("UserLogger").message_key is None
        True
        """
        slug, _, key = value.partition(":")
        return cls(logger_slug=slug, message_key=key or None)


class ActorRef(BaseModel):
    """Initiator identity to filter by; ``ident`` narrows a kind to one actor."""

    model_config = ConfigDict(frozen=True)

    kind: InitiatorKind
    ident: str | None = Field(
        None,
        description="User id for users, tool name for automation",
    )

    @classmethod
    def parse(cls, value: str) -> ActorRef:
        """
        Parse ``kind`` or ``kind:ident``.

        Examples
        --------
        >>> ActorRef.parse("user:5")
        ActorRef(kind=<InitiatorKind.USER: 'user'>, ident='5')
        """
        kind, _, ident = value.partition(":")
        return cls(kind=kind, ident=ident or None)

    @classmethod
    def user(cls, user_id: str | int) -> ActorRef:
        return cls(kind=InitiatorKind.USER, ident=str(user_id))


class EventFilter(BaseModel):
    """
    Composable query filter. Unset options impose no restriction.

    Attributes
    ----------
    date_range : DateRange | None
        Time restriction
    severities : list[Severity]
        Allowed severities
    message_types : list[MessageType]
        Allowed message types; logger-level entries match every key
    actors : list[ActorRef]
        Allowed initiators
    text : str | None
        Free-text words, all of which must match
    """

    model_config = ConfigDict(frozen=True)

    date_range: DateRange | None = None
    severities: list[Severity] = Field(default_factory=list)
    message_types: list[MessageType] = Field(default_factory=list)
    actors: list[ActorRef] = Field(default_factory=list)
    text: str | None = Field(None, max_length=500)

    @field_validator("text")
    @classmethod
    def normalize_text(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def words(self) -> list[str]:
        return self.text.split() if self.text else []


def build_filter(**options: Any) -> EventFilter:
    """
    Validate filter options, raising the engine's error type.

    Raises
    ------
    FilterValidationError
        If any option is malformed
    """
    try:
        return EventFilter(**options)
    except ValidationError as exc:
        raise FilterValidationError(str(exc)) from exc


# ============================================================================
# Input Schemas
# ============================================================================


class CaptureRequest(BaseModel):
    """Schema for capturing an event from the CLI."""

    logger_slug: str = Field(..., min_length=1, max_length=128)
    message_key: str = Field(..., min_length=1, max_length=128)
    severity: Severity = Severity.INFO
    context: dict[str, str] = Field(default_factory=dict)
    occasion_id: str | None = Field(None, max_length=255)
    tool: str = Field("cli", min_length=1, max_length=64)
    via: str | None = Field(None, max_length=64)

    @classmethod
    def parse_pairs(cls, pairs: list[str]) -> dict[str, str]:
        """
        Turn ``key=value`` strings into a context mapping.

        Examples
        --------
        >>> CaptureRequest.parse_pairs(["login=alice", "note=a=b"])
        {'login': 'alice', 'note': 'a=b'}
        """
        context: dict[str, str] = {}
        for pair in pairs:
            key, sep, value = pair.partition("=")
            if not sep or not key:
                msg = f"Expected key=value, got {pair!r}"
                raise ValueError(msg)
            context[key] = value
        return context


# ============================================================================
# Response Schemas (Export to JSON/CSV)
# ============================================================================


class EventResponse(BaseModel):
    """
    Schema for exporting an Event.

    Use :meth:`from_event` so the rendered message and initiator label are
    computed from the stored row.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    date: datetime
    first_seen_at: datetime
    logger: str
    message_key: str
    initiator: str
    description: str
    via: str | None = None
    level: str
    count: int
    context: dict[str, str]

    @classmethod
    def from_event(cls, event: Event, registry: MessageRegistry | None = None) -> EventResponse:
        if registry is not None:
            description = registry.plain_message(event)
        else:
            description = event.message_key
        return cls(
            id=event.id,
            date=event.last_seen,
            first_seen_at=event.first_seen,
            logger=event.logger_slug,
            message_key=event.message_key,
            initiator=describe_initiator(event.initiator),
            description=description,
            via=event.context.get(MetaKey.VIA.value),
            level=event.severity,
            count=event.occurrence_count,
            context=event.context.to_dict(),
        )
