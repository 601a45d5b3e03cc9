"""Filtered, paginated event queries.

All reads share one predicate builder, so a page listing, its total count
and the "new events since" poll always agree on what matches a filter.

Examples
--------
>>> q = EventQuery(db)
>>> page = q.query(EventFilter(severities=["warning"]), page=1, page_size=20)
>>> page.total_count, page.total_pages
(42, 3)
>>> q.count_newer_than(EventFilter(severities=["warning"]), max_id=page.events[0].id)
0
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from auditlog_db.config import Settings, get_settings
from auditlog_db.constants import InitiatorKind, RESERVED_PREFIX
from auditlog_db.errors import FilterValidationError, StoreError
from auditlog_db.models.orm import Event, EventContextRow
from auditlog_db.models.schemas import ActorRef, EventFilter
from auditlog_db.utils import as_utc, utc_now

if TYPE_CHECKING:
    from sqlalchemy.sql import ColumnElement

    from auditlog_db.db import Database
    from auditlog_db.render import MessageRegistry

__all__ = ["EventPage", "EventQuery"]


@dataclass
class EventPage:
    """
    One page of query results, newest first.

    Attributes
    ----------
    events : list[Event]
        Events on this page (detached, context loaded)
    total_count : int
        Events matching the filter across all pages
    total_pages : int
        Number of pages at this page size (0 when nothing matches)
    page : int
        1-based page number
    page_size : int
        Effective page size after clamping
    """

    events: list[Event] = field(default_factory=list)
    total_count: int = 0
    total_pages: int = 0
    page: int = 1
    page_size: int = 25

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def max_id(self) -> int | None:
        """Highest id on the page, for "new events" polling."""
        return max((e.id for e in self.events), default=None)


class EventQuery:
    """
    Read interface over stored events.

    Queries open short read-only sessions and hold no locks, so they can run
    concurrently with captures and be abandoned at any time.

    Parameters
    ----------
    database : Database
        Source database
    settings : Settings, optional
        Paging defaults, by default :func:`get_settings`
    registry : MessageRegistry, optional
        Enables free-text matching against message template text
    clock : Callable[[], datetime], optional
        Source of "now" for relative date ranges
    """

    def __init__(
        self,
        database: Database,
        settings: Settings | None = None,
        registry: MessageRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.database = database
        self.settings = settings or get_settings()
        self.registry = registry
        self._clock = clock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def query(
        self,
        filter: EventFilter | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> EventPage:
        """
        Return one page of matching events, newest first.

        Parameters
        ----------
        filter : EventFilter, optional
            Restrictions; None matches everything
        page : int, optional
            1-based page number, by default 1
        page_size : int, optional
            Rows per page, by default ``settings.default_page_size``;
            clamped to ``settings.max_page_size``

        Returns
        -------
        EventPage
            Page contents and totals; pages past the end are empty

        Raises
        ------
        FilterValidationError
            If paging arguments are invalid
        """
        size = self._page_size(page, page_size)
        conditions = self.conditions(filter)

        count_stmt = select(func.count(Event.id)).where(*conditions)
        stmt = (
            select(Event)
            .where(*conditions)
            .order_by(Event.id.desc())
            .offset((page - 1) * size)
            .limit(size)
        )
        try:
            with self.database.session() as session:
                total = session.execute(count_stmt).scalar_one()
                events = list(session.execute(stmt).scalars().all())
        except SQLAlchemyError as exc:
            msg = f"Event query failed: {exc}"
            raise StoreError(msg) from exc

        return EventPage(
            events=events,
            total_count=total,
            total_pages=math.ceil(total / size),
            page=page,
            page_size=size,
        )

    def count_newer_than(self, filter: EventFilter | None, max_id: int) -> int:
        """
        Count matching events inserted after ``max_id``.

        Merges into existing rows do not create new ids and are not counted.
        """
        if max_id < 0:
            msg = f"max_id must be non-negative, got {max_id}"
            raise FilterValidationError(msg)
        stmt = select(func.count(Event.id)).where(*self.conditions(filter), Event.id > max_id)
        return self._scalar(stmt) or 0

    def max_id(self, filter: EventFilter | None = None) -> int | None:
        """Highest id matching ``filter``, or None when nothing matches."""
        stmt = select(func.max(Event.id)).where(*self.conditions(filter))
        return self._scalar(stmt)

    # ------------------------------------------------------------------
    # Predicate building
    # ------------------------------------------------------------------

    def conditions(self, filter: EventFilter | None) -> list[ColumnElement[bool]]:
        """Translate a filter into WHERE clauses (AND-ed together)."""
        if filter is None:
            return []
        if not isinstance(filter, EventFilter):
            msg = f"Expected EventFilter, got {type(filter).__name__}"
            raise FilterValidationError(msg)

        conditions: list[ColumnElement[bool]] = []

        if filter.date_range is not None:
            lower, upper = filter.date_range.resolve(as_utc(self._clock()))
            # An event row covers [first_seen_at, last_seen_at]; keep it if
            # that span overlaps the requested range.
            if lower is not None:
                conditions.append(Event.last_seen_at >= lower)
            if upper is not None:
                conditions.append(Event.first_seen_at < upper)

        if filter.severities:
            conditions.append(Event.severity.in_([s.value for s in filter.severities]))

        if filter.message_types:
            clauses = []
            for mt in filter.message_types:
                if mt.message_key is None:
                    clauses.append(Event.logger_slug == mt.logger_slug)
                else:
                    clauses.append(
                        and_(Event.logger_slug == mt.logger_slug, Event.message_key == mt.message_key)
                    )
            conditions.append(or_(*clauses))

        if filter.actors:
            conditions.append(or_(*[_actor_clause(actor) for actor in filter.actors]))

        for word in filter.words:
            conditions.append(self._word_clause(word))

        return conditions

    def _word_clause(self, word: str) -> ColumnElement[bool]:
        pattern = _like_pattern(word)
        context_match = exists().where(
            EventContextRow.event_fk == Event.id,
            ~EventContextRow.key.startswith(RESERVED_PREFIX, autoescape=True),
            EventContextRow.value.ilike(pattern, escape="\\"),
        )
        clauses = [
            context_match,
            Event.message_key.ilike(pattern, escape="\\"),
            Event.initiator_login.ilike(pattern, escape="\\"),
            Event.initiator_email.ilike(pattern, escape="\\"),
        ]
        if self.registry is not None:
            for slug, key in self.registry.keys_matching(word):
                clauses.append(and_(Event.logger_slug == slug, Event.message_key == key))
        return or_(*clauses)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _page_size(self, page: int, page_size: int | None) -> int:
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            msg = f"page must be a positive integer, got {page!r}"
            raise FilterValidationError(msg)
        if page_size is None:
            page_size = self.settings.default_page_size
        if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
            msg = f"page_size must be a positive integer, got {page_size!r}"
            raise FilterValidationError(msg)
        return min(page_size, self.settings.max_page_size)

    def _scalar(self, stmt):
        try:
            with self.database.session() as session:
                return session.execute(stmt).scalar_one()
        except SQLAlchemyError as exc:
            msg = f"Event query failed: {exc}"
            raise StoreError(msg) from exc


def _actor_clause(actor: ActorRef) -> ColumnElement[bool]:
    clause = Event.initiator_kind == actor.kind.value
    if actor.ident is None:
        return clause
    if actor.kind is InitiatorKind.USER:
        return and_(clause, Event.initiator_user_id == actor.ident)
    if actor.kind is InitiatorKind.AUTOMATION:
        return and_(clause, Event.initiator_tool == actor.ident)
    return clause


def _like_pattern(word: str) -> str:
    """Substring LIKE pattern with ``%``, ``_`` and ``\\`` escaped."""
    escaped = word.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
