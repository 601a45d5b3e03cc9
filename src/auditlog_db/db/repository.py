"""Repository pattern for data access layer."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Generic, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from auditlog_db.models.orm import Event, EventContextRow

if TYPE_CHECKING:
    from typing import Any

    from sqlalchemy.orm import DeclarativeBase

__all__ = ["BaseRepository", "EventRepository"]

T = TypeVar("T", bound="DeclarativeBase")


class BaseRepository(Generic[T]):
    """
    Base repository providing CRUD operations.

    Parameters
    ----------
    session : Session
        Database session
    model_class : type[T]
        ORM model class

    Examples
    --------
    >>> repo = BaseRepository(session, Event)
    >>> event = repo.get(42)
    """

    def __init__(self, session: Session, model_class: type[T]) -> None:
        self.session = session
        self.model_class = model_class

    def get(self, id_value: Any) -> T | None:
        """
        Get entity by primary key.

        Returns
        -------
        T | None
            Entity instance or None if not found
        """
        return self.session.get(self.model_class, id_value)

    def create(self, obj: T) -> T:
        """Add a new entity and flush so DB-generated fields are populated."""
        self.session.add(obj)
        self.session.flush()
        return obj

    def update(self, obj: T) -> T:
        self.session.add(obj)
        self.session.flush()
        return obj


class EventRepository(BaseRepository[Event]):
    """
    Event-specific queries used by the store, the CLI and retention.

    Examples
    --------
    >>> repo = EventRepository(session)
    >>> latest = repo.latest_for_logger("UserLogger")
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, Event)

    def latest_for_logger(self, logger_slug: str, *, for_update: bool = False) -> Event | None:
        """
        Most recent event of a producer (highest id).

        This is the only merge candidate for a new occurrence.

        Parameters
        ----------
        logger_slug : str
            Producer slug
        for_update : bool, optional
            Lock the returned row until the transaction ends
            (``SELECT ... FOR UPDATE``), by default False
        """
        stmt = select(Event).where(Event.logger_slug == logger_slug).order_by(Event.id.desc()).limit(1)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalars().first()

    def replace_context(self, event: Event, context: dict[str, str]) -> None:
        """
        Swap the stored context of ``event`` for ``context`` as a whole.

        Rows for surviving keys are updated in place; the (event_fk, key)
        primary key forbids deleting and re-adding them in one flush.
        """
        existing = {row.key: row for row in event.context_rows}
        for key, row in existing.items():
            if key not in context:
                event.context_rows.remove(row)
        for key, value in context.items():
            row = existing.get(key)
            if row is None:
                event.context_rows.append(EventContextRow(key=key, value=value))
            else:
                row.value = value

    def count(self) -> int:
        return self.session.execute(select(func.count()).select_from(Event)).scalar_one()

    def counts_by(self, column: str) -> list[tuple[str, int]]:
        """
        Event counts grouped by a column, largest first.

        Examples
        --------
        >>> repo.counts_by("severity")
        [('info', 120), ('warning', 7)]
        """
        col = getattr(Event, column)
        stmt = select(col, func.count()).group_by(col).order_by(func.count().desc(), col)
        return [(value, n) for value, n in self.session.execute(stmt).all()]

    def purge_older_than(self, days: int, now: datetime) -> int:
        """
        Delete events whose last occurrence is older than ``days``.

        Parameters
        ----------
        days : int
            Retention period
        now : datetime
            Reference time (aware UTC)

        Returns
        -------
        int
            Number of events deleted
        """
        if days < 1:
            msg = f"Retention must be at least one day, got {days}"
            raise ValueError(msg)
        cutoff = now - timedelta(days=days)
        doomed = select(Event.id).where(Event.last_seen_at < cutoff)
        self.session.execute(
            delete(EventContextRow).where(EventContextRow.event_fk.in_(doomed)),
            execution_options={"synchronize_session": False},
        )
        result = self.session.execute(
            delete(Event).where(Event.last_seen_at < cutoff),
            execution_options={"synchronize_session": False},
        )
        return result.rowcount or 0
