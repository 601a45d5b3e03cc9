"""Event models: Event, EventContextRow."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from auditlog_db.constants import Severity
from auditlog_db.context import EventContext
from auditlog_db.models.initiator import Initiator, initiator_from_columns
from auditlog_db.models.orm.base import Base
from auditlog_db.utils import Label, Pk, Slug, Timestamp, Value, as_utc, fk


class Event(Base):
    """
    One stored activity record.

    A row covers one or more occurrences of the same occasion; repeated
    occurrences bump ``occurrence_count`` and ``last_seen_at``.

    Attributes
    ----------
    id : int
        Monotonic identity, assigned at insert
    first_seen_at : datetime
        First occurrence covered by the row
    last_seen_at : datetime
        Most recent occurrence covered by the row
    logger_slug : str
        Producing logger
    message_key : str
        Message type within the logger
    severity : str
        One of :class:`~auditlog_db.constants.Severity`
    initiator_kind : str
        One of :class:`~auditlog_db.constants.InitiatorKind`
    occasion_id : str | None
        Fingerprint used for merge decisions; NULL never merges
    occurrence_count : int
        Number of occurrences merged into the row
    """

    __tablename__ = "event"

    id: Mapped[Pk]

    first_seen_at: Mapped[Timestamp]

    last_seen_at: Mapped[Timestamp]

    logger_slug: Mapped[Slug]

    message_key: Mapped[Label] = mapped_column(index=True)

    severity: Mapped[str] = mapped_column(String(16), index=True)

    initiator_kind: Mapped[str] = mapped_column(String(16), index=True)

    initiator_user_id: Mapped[str | None] = mapped_column(String(64), index=True)

    initiator_login: Mapped[str | None] = mapped_column(String(255))

    initiator_email: Mapped[str | None] = mapped_column(String(255))

    initiator_tool: Mapped[str | None] = mapped_column(String(64))

    occasion_id: Mapped[str | None] = mapped_column(String(255))

    occurrence_count: Mapped[int] = mapped_column(Integer, default=1)

    context_rows: Mapped[list[EventContextRow]] = relationship(
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="EventContextRow.key",
    )

    __table_args__ = (
        Index(
            "ix_event_occasion",
            "logger_slug",
            "message_key",
            "occasion_id",
            "last_seen_at",
        ),
        Index("ix_event_logger_id", "logger_slug", "id"),
        CheckConstraint("occurrence_count >= 1", name="ck_event_occurrence_count"),
        {"sqlite_autoincrement": True},
    )

    @property
    def context(self) -> EventContext:
        """Stored context, engine meta keys included."""
        return EventContext.from_stored({row.key: row.value for row in self.context_rows})

    @property
    def initiator(self) -> Initiator:
        return initiator_from_columns(
            self.initiator_kind,
            user_id=self.initiator_user_id,
            login=self.initiator_login,
            email=self.initiator_email,
            tool=self.initiator_tool,
        )

    @property
    def level(self) -> Severity:
        return Severity(self.severity)

    @property
    def first_seen(self) -> datetime:
        """``first_seen_at`` as aware UTC."""
        return as_utc(self.first_seen_at)

    @property
    def last_seen(self) -> datetime:
        """``last_seen_at`` as aware UTC."""
        return as_utc(self.last_seen_at)

    def __repr__(self) -> str:
        return (
            f"<Event id={self.id} {self.logger_slug}/{self.message_key} "
            f"count={self.occurrence_count}>"
        )


class EventContextRow(Base):
    """
    One context key/value pair of an event.

    Composite primary key (event_fk, key).
    """

    __tablename__ = "event_context"

    event_fk: Mapped[int] = fk("event.id", primary_key=True)

    key: Mapped[str] = mapped_column(String(255), primary_key=True)

    value: Mapped[Value]

    event: Mapped[Event] = relationship(back_populates="context_rows")
