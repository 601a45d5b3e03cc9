"""Database layer: engine/session wrapper and repositories."""

from __future__ import annotations

__all__ = [
    "BaseRepository",
    "Database",
    "EventRepository",
    "SQLiteDatabase",
    "ServerDatabase",
    "create_database",
]

from .database import Database, SQLiteDatabase, ServerDatabase, create_database
from .repository import BaseRepository, EventRepository
