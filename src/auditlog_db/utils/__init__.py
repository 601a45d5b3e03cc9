"""Utility functions for auditlog_db."""

from __future__ import annotations

__all__ = [
    "SQLITE_BEGIN_OPTION",
    "as_utc",
    "canonical_json",
    "configure_sqlite",
    "month_bounds",
    "occasion_hash",
    "setup_logging",
    "utc_now",
    "utcnow",
    # Mapped types
    "Pk",
    "Slug",
    "Label",
    "Value",
    "Timestamp",
    "fk",
]

from .db import SQLITE_BEGIN_OPTION, configure_sqlite
from .hashing import canonical_json, occasion_hash
from .log import setup_logging
from .mapped_types import Label, Pk, Slug, Timestamp, Value, fk
from .time import as_utc, month_bounds, utc_now, utcnow
