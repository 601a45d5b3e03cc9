"""Event store: capture with occasion merging, lookup and retention."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from auditlog_db.config import Settings, get_settings
from auditlog_db.constants import MetaKey, Severity
from auditlog_db.context import EventContext
from auditlog_db.db import EventRepository
from auditlog_db.errors import AuditLogError, EventNotFoundError, StoreError
from auditlog_db.models.initiator import (
    Authenticated,
    Initiator,
    initiator_columns,
    initiator_kind,
)
from auditlog_db.models.orm import Event, EventContextRow
from auditlog_db.occasion import OccasionLocks, OccasionPolicy
from auditlog_db.utils import as_utc, utc_now

if TYPE_CHECKING:
    from auditlog_db.db import Database
    from auditlog_db.render import MessageRegistry

__all__ = ["EventStore"]


class EventStore:
    """
    Durable store for audit events.

    Coordinates context validation, occasion fingerprinting and the
    merge-or-insert decision. One instance is meant to be shared by all
    producer threads of a process. Captures of one producer queue on an
    in-process lock and then take the database write lock, so separate
    stores and processes sharing a database also merge correctly.

    Parameters
    ----------
    database : Database
        Target database (tables must exist)
    settings : Settings, optional
        Engine settings, by default :func:`get_settings`
    registry : MessageRegistry, optional
        Producer vocabularies; captures for unregistered producers are logged
    clock : Callable[[], datetime], optional
        Source of "now" (aware UTC), by default :func:`utc_now`

    Examples
    --------
    >>> store = EventStore(db)
    >>> event_id = store.capture(
    ...     "UserLogger", "user_login_failed", "warning", Anonymous(),
    ...     {"login": "alice"}, occasion_id="UserLogger/failed_user_login",
    ... )
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
        self.policy = OccasionPolicy.from_settings(self.settings)
        self._clock = clock
        self._locks = OccasionLocks()

    def capture(
        self,
        logger_slug: str,
        message_key: str,
        severity: Severity | str,
        initiator: Initiator,
        context: Mapping[str, Any] | None = None,
        occasion_id: str | None = None,
        occurred_at: datetime | None = None,
        via: str | None = None,
    ) -> int:
        """
        Store one occurrence, merging it into an open occasion when possible.

        Parameters
        ----------
        logger_slug : str
            Producing logger
        message_key : str
            Message type within the logger
        severity : Severity | str
            Event level
        initiator : Initiator
            Who or what caused the event
        context : Mapping[str, Any], optional
            Producer context; keys must not start with ``_``
        occasion_id : str, optional
            Explicit occasion id; occurrences sharing it may merge even
            across message keys
        occurred_at : datetime, optional
            Occurrence time, by default the store clock
        via : str, optional
            Channel the event came through (web, cli, cron, ...)

        Returns
        -------
        int
            Id of the inserted or merged event

        Raises
        ------
        ReservedKeyError
            If the context uses a reserved key
        ValueError
            If logger, message key or severity are invalid
        StoreError
            If the database write fails; nothing is persisted
        """
        if not logger_slug or not message_key:
            msg = "logger_slug and message_key must be non-empty"
            raise ValueError(msg)
        level = Severity(severity)
        ctx = EventContext.from_mapping(context)
        kind = initiator_kind(initiator)
        now = as_utc(occurred_at if occurred_at is not None else self._clock())

        user_id = initiator.user_id if isinstance(initiator, Authenticated) else None
        fingerprint = self.policy.fingerprint_for(
            logger_slug, message_key, occasion_id, ctx, user_id=user_id
        )

        ctx._set_meta(MetaKey.MESSAGE_KEY.value, message_key)
        ctx._set_meta(MetaKey.INITIATOR.value, kind.value)
        if isinstance(initiator, Authenticated):
            ctx._set_meta(MetaKey.USER_ID.value, initiator.user_id)
            ctx._set_meta(MetaKey.USER_LOGIN.value, initiator.login)
            ctx._set_meta(MetaKey.USER_EMAIL.value, initiator.email)
        if fingerprint is not None:
            ctx._set_meta(MetaKey.OCCASION_ID.value, fingerprint)
        if via:
            ctx._set_meta(MetaKey.VIA.value, via)
        if self.registry is not None and logger_slug not in self.registry:
            logger.debug(f"Capturing for unregistered logger {logger_slug}")
        stored = ctx.to_dict()
        columns = initiator_columns(initiator)

        with self._locks.hold(logger_slug):
            try:
                with self.database.session(write_lock=True) as session:
                    repo = EventRepository(session)
                    latest = repo.latest_for_logger(logger_slug, for_update=True)
                    if self.policy.should_merge(latest, fingerprint, now):
                        event = latest
                        event.occurrence_count = Event.occurrence_count + 1
                        event.last_seen_at = max(event.last_seen, now)
                        event.message_key = message_key
                        event.severity = level.value
                        for name, value in columns.items():
                            setattr(event, name, value)
                        repo.replace_context(event, stored)
                        repo.update(event)
                        action = "Merged"
                    else:
                        event = Event(
                            first_seen_at=now,
                            last_seen_at=now,
                            logger_slug=logger_slug,
                            message_key=message_key,
                            severity=level.value,
                            occasion_id=fingerprint,
                            occurrence_count=1,
                            context_rows=[
                                EventContextRow(key=k, value=v) for k, v in stored.items()
                            ],
                            **columns,
                        )
                        repo.create(event)
                        action = "Inserted"
                    event_id = event.id
                    count = event.occurrence_count
            except SQLAlchemyError as exc:
                msg = f"Failed to store {logger_slug}/{message_key}: {exc}"
                raise StoreError(msg) from exc

        logger.debug(f"{action} event {event_id} ({logger_slug}/{message_key}, count={count})")
        return event_id

    def try_capture(self, *args: Any, **kwargs: Any) -> int | None:
        """
        Best-effort :meth:`capture` for producers that must never fail.

        Errors are logged and ``None`` is returned.
        """
        try:
            return self.capture(*args, **kwargs)
        except (AuditLogError, ValueError, TypeError):
            logger.exception("Audit event was not stored")
            return None

    def find_by_id(self, event_id: int) -> Event | None:
        """Return the event with ``event_id``, or None."""
        try:
            with self.database.session() as session:
                return EventRepository(session).get(event_id)
        except SQLAlchemyError as exc:
            msg = f"Failed to load event {event_id}: {exc}"
            raise StoreError(msg) from exc

    def get_by_id(self, event_id: int) -> Event:
        """
        Return the event with ``event_id``.

        Raises
        ------
        EventNotFoundError
            If no such event exists
        """
        event = self.find_by_id(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def purge(self, days: int | None = None) -> int:
        """
        Delete events older than the retention period.

        Parameters
        ----------
        days : int, optional
            Retention in days, by default ``settings.retention_days``

        Returns
        -------
        int
            Number of deleted events
        """
        days = days if days is not None else self.settings.retention_days
        try:
            with self.database.session() as session:
                deleted = EventRepository(session).purge_older_than(days, self._clock())
        except SQLAlchemyError as exc:
            msg = f"Failed to purge events: {exc}"
            raise StoreError(msg) from exc
        logger.info(f"Purged {deleted} events older than {days} days")
        return deleted
