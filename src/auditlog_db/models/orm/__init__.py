"""SQLAlchemy 2.0 ORM models for auditlog_db.

- base.py - Base class
- event.py - Event and its context rows (EventContextRow)

Architecture:
- One ``event`` row per occasion; repeats bump ``occurrence_count``
- Context stored as key/value rows so free-text search can match values
- ``ix_event_occasion`` / ``ix_event_logger_id`` back the merge lookup
"""

from __future__ import annotations

from auditlog_db.models.orm.base import Base
from auditlog_db.models.orm.event import Event, EventContextRow

__all__ = [
    "Base",
    "Event",
    "EventContextRow",
]
