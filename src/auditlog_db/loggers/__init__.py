"""Bundled producer vocabularies."""

from __future__ import annotations

from auditlog_db.render.registry import MessageRegistry

from .user import USER_LOGGER

__all__ = ["BUILTIN_LOGGERS", "USER_LOGGER", "default_registry"]

BUILTIN_LOGGERS = [USER_LOGGER]


def default_registry() -> MessageRegistry:
    """A registry with every bundled logger registered."""
    return MessageRegistry(BUILTIN_LOGGERS)
