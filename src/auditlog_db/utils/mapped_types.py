"""SQLAlchemy mapped type helpers for consistent column definitions."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import mapped_column

from auditlog_db.utils.time import utcnow

__all__ = [
    "Pk",
    "Slug",
    "Label",
    "Value",
    "Timestamp",
    "fk",
]

# Integer primary key. Tables that need ids never reused after deletes also set
# sqlite_autoincrement in their table args.
Pk = Annotated[
    int,
    mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="Primary key",
    ),
]

Slug = Annotated[
    str,
    mapped_column(
        String(128),
        index=True,
        comment="Namespaced identifier",
    ),
]

Label = Annotated[
    str,
    mapped_column(
        String(128),
        comment="Label",
    ),
]

Value = Annotated[
    str,
    mapped_column(
        Text,
        comment="Free-form text value",
    ),
]

Timestamp = Annotated[
    datetime,
    mapped_column(
        DateTime(timezone=True),
        server_default=utcnow(),
        index=True,
        comment="UTC timestamp",
    ),
]


def fk(
    target: str,
    **kwargs,
):
    """
    Create an integer foreign key column.

    Parameters
    ----------
    target : str
        Target column as ``table.column``
    **kwargs
        Additional mapped_column arguments

    Examples
    --------
    >>> event_fk: Mapped[int] = fk("event.id", primary_key=True)
    """
    kwargs.setdefault("comment", f"Foreign key to {target}")
    ondelete = kwargs.pop("ondelete", "CASCADE")

    return mapped_column(
        ForeignKey(target, ondelete=ondelete),
        **kwargs,
    )
