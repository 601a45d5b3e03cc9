"""Query engine for stored events."""

from __future__ import annotations

__all__ = ["EventPage", "EventQuery"]

from .events import EventPage, EventQuery
