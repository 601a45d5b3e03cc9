"""Time utility functions."""

from __future__ import annotations

from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql import expression

__all__ = ["as_utc", "month_bounds", "utc_now", "utcnow"]


def utc_now() -> datetime:
    """
    Return current UTC time with timezone awareness.

    Returns
    -------
    datetime
        Current UTC timestamp with tzinfo=timezone.utc

    Examples
    --------
    >>> from datetime import timezone
    >>> now = utc_now()
    >>> now.tzinfo == timezone.utc
    True
    """
    return datetime.now(tz=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    SQLite hands back naive datetimes for ``DateTime(timezone=True)``
    columns; those are stored as UTC, so they are tagged rather than shifted.

    Examples
    --------
    >>> as_utc(datetime(2024, 1, 1, 12)).tzinfo is timezone.utc
    True
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def month_bounds(month: str) -> tuple[datetime, datetime]:
    """
    Return the UTC [start, end) interval of a ``YYYY-MM`` month.

    Examples
    --------
    >>> start, end = month_bounds("2024-12")
    >>> start.month, end.year, end.month
    (12, 2025, 1)
    """
    year_str, month_str = month.split("-", 1)
    year, mon = int(year_str), int(month_str)
    start = datetime(year, mon, 1, tzinfo=timezone.utc)
    if mon == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, mon + 1, 1, tzinfo=timezone.utc)
    return start, end


class utcnow(expression.FunctionElement):  # noqa: N801
    """SQL function element for database-generated UTC timestamps.

    Examples
    --------
    >>> from sqlalchemy.orm import mapped_column
    >>> first_seen_at: Mapped[datetime] = mapped_column(
    ...     DateTime(timezone=True),
    ...     server_default=utcnow()
    ... )
    """

    type = sa.DateTime()
    inherit_cache = True


@compiles(utcnow, "postgresql")
def pg_utcnow(_element, _compiler, **_kw):
    """PostgreSQL: TIMEZONE('utc', CURRENT_TIMESTAMP)."""
    return "TIMEZONE('utc', CURRENT_TIMESTAMP)"


@compiles(utcnow, "mysql")
def mysql_utcnow(_element, _compiler, **_kw):
    """MySQL: UTC_TIMESTAMP()."""
    return "UTC_TIMESTAMP()"


@compiles(utcnow, "sqlite")
@compiles(utcnow)  # Default for other databases
def default_utcnow(_element, _compiler, **_kw):
    """SQLite and others: CURRENT_TIMESTAMP."""
    return "CURRENT_TIMESTAMP"
