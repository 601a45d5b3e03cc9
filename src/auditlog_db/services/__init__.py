"""Services for auditlog_db."""

from __future__ import annotations

__all__ = ["EventStore"]

from .capture import EventStore
