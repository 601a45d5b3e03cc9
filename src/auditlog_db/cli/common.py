"""Shared option types and helpers for CLI commands."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Annotated, Optional

import typer

if TYPE_CHECKING:
    from auditlog_db.db import Database
    from auditlog_db.models.schemas import EventFilter

_DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]

DbOption = Annotated[
    Optional[str],
    typer.Option("--db", help="Database URL (default: AUDITLOG_DATABASE_URL)"),
]
LevelOption = Annotated[
    Optional[list[str]],
    typer.Option("--level", "-l", help="Severity to include (repeatable)"),
]
TypeOption = Annotated[
    Optional[list[str]],
    typer.Option("--type", "-t", help="Message type as LOGGER or LOGGER:KEY (repeatable)"),
]
UserOption = Annotated[
    Optional[list[str]],
    typer.Option("--user", "-u", help="Initiator user id (repeatable)"),
]
ActorOption = Annotated[
    Optional[list[str]],
    typer.Option("--actor", help="Initiator as KIND or KIND:IDENT, e.g. automation:cron"),
]
SearchOption = Annotated[
    Optional[str],
    typer.Option("--search", "-s", help="Free-text words, all must match"),
]
LastDaysOption = Annotated[
    Optional[int],
    typer.Option("--last-days", help="Only events from the last N days"),
]
MonthOption = Annotated[
    Optional[str],
    typer.Option("--month", help="Only events from month YYYY-MM"),
]
FromOption = Annotated[
    Optional[datetime],
    typer.Option("--from", formats=_DATE_FORMATS, help="Start of the date range (UTC)"),
]
ToOption = Annotated[
    Optional[datetime],
    typer.Option("--to", formats=_DATE_FORMATS, help="End of the date range (UTC, inclusive)"),
]


def open_database(db_url: str | None) -> Database:
    """Open the database from ``--db`` or settings and ensure the tables exist."""
    from auditlog_db.config import get_settings
    from auditlog_db.db import create_database

    settings = get_settings()
    db = create_database(db_url or settings.database_url, echo=settings.echo_sql)
    db.create_tables()
    return db


def build_cli_filter(
    levels: list[str] | None = None,
    types: list[str] | None = None,
    users: list[str] | None = None,
    actors: list[str] | None = None,
    search: str | None = None,
    last_days: int | None = None,
    month: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> EventFilter:
    """
    Translate CLI options into a validated filter.

    Raises
    ------
    FilterValidationError
        If any option is malformed
    """
    from pydantic import ValidationError

    from auditlog_db.errors import FilterValidationError
    from auditlog_db.models.schemas import ActorRef, MessageType, build_filter

    try:
        actor_refs = [ActorRef.user(u) for u in users or []]
        actor_refs += [ActorRef.parse(a) for a in actors or []]
        message_types = [MessageType.parse(t) for t in types or []]
    except ValidationError as exc:
        raise FilterValidationError(str(exc)) from exc

    date_range = None
    if any(v is not None for v in (last_days, month, date_from, date_to)):
        date_range = {
            "last_days": last_days,
            "month": month,
            "start": date_from,
            "end": date_to,
        }

    return build_filter(
        date_range=date_range,
        severities=[level.lower() for level in levels or []],
        message_types=message_types,
        actors=actor_refs,
        text=search,
    )
