"""Audit event capture, occasion deduplication and filtered history queries.

Examples
--------
>>> from auditlog_db import EventQuery, EventStore, create_database
>>> from auditlog_db.loggers import default_registry
>>> db = create_database("sqlite://")
>>> db.create_tables()
>>> store = EventStore(db, registry=default_registry())
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = [
    "EventContext",
    "EventFilter",
    "EventPage",
    "EventQuery",
    "EventStore",
    "MessageRegistry",
    "Settings",
    "Severity",
    "create_database",
]

from .config import Settings
from .constants import Severity
from .context import EventContext
from .db import create_database
from .models.schemas import EventFilter
from .query import EventPage, EventQuery
from .render import MessageRegistry
from .services import EventStore
