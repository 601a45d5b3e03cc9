"""Registry of producer vocabularies.

Each producer ("logger") registers a :class:`LoggerInfo` describing its
message templates, the search groups offered in filter UIs and the display
table for diffable context fields. The core never hardcodes any producer's
vocabulary; events of unregistered producers still render, using the message
key as their template.

Examples
--------
>>> registry = MessageRegistry()
>>> registry.register(LoggerInfo(slug="Demo", name="Demo", messages={"hi": "Hi {who}"}))
>>> registry.template_for("Demo", "hi")
'Hi {who}'
>>> registry.template_for("Demo", "missing")
'missing'

A producer can pick another template from the stored context through its
``message_hook``, e.g. a different wording when users act on themselves.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger
from markupsafe import Markup

from auditlog_db.render.diff import DiffField, context_diff_rows, render_diff_table
from auditlog_db.render.template import render_message, render_plain

if TYPE_CHECKING:
    from auditlog_db.models.orm import Event

__all__ = ["DetailBuilder", "LoggerInfo", "MessageHook", "MessageRegistry", "SearchOption"]

# (message_key, context) -> extra (label, value) rows for the detail table
DetailBuilder = Callable[[str, Mapping[str, str]], list[tuple[str, str]]]

# (message_key, context) -> template overriding the registered one, or None
MessageHook = Callable[[str, Mapping[str, str]], str | None]


@dataclass(frozen=True)
class LoggerInfo:
    """
    Vocabulary of one producer.

    Attributes
    ----------
    slug : str
        Producer namespace stored on every event
    name : str
        Display name
    description : str
        What the producer logs
    messages : dict[str, str]
        Message key to template
    search_groups : dict[str, list[str]]
        Search option label to the message keys it selects
    diff_fields : dict[str, DiffField]
        Display table for diffable context fields, in display order
    details : DetailBuilder | None
        Extra detail rows for specific message keys
    message_hook : MessageHook | None
        Picks a template from the event context; None keeps the registered one
    """

    slug: str
    name: str
    description: str = ""
    messages: dict[str, str] = field(default_factory=dict)
    search_groups: dict[str, list[str]] = field(default_factory=dict)
    diff_fields: dict[str, DiffField] = field(default_factory=dict)
    details: DetailBuilder | None = None
    message_hook: MessageHook | None = None


@dataclass(frozen=True)
class SearchOption:
    """A selectable message-type filter entry: label plus ``(slug, key)`` pairs."""

    label: str
    message_types: list[tuple[str, str | None]]


class MessageRegistry:
    """Thread-safe lookup of producer vocabularies."""

    def __init__(self, loggers: list[LoggerInfo] | None = None) -> None:
        self._lock = threading.Lock()
        self._loggers: dict[str, LoggerInfo] = {}
        for info in loggers or []:
            self.register(info)

    def register(self, info: LoggerInfo) -> None:
        """Add or replace a producer vocabulary."""
        with self._lock:
            if info.slug in self._loggers:
                logger.debug(f"Replacing registered logger {info.slug}")
            self._loggers[info.slug] = info

    def get(self, slug: str) -> LoggerInfo | None:
        return self._loggers.get(slug)

    def loggers(self) -> list[LoggerInfo]:
        return list(self._loggers.values())

    def __contains__(self, slug: object) -> bool:
        return slug in self._loggers

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def template_for(
        self,
        logger_slug: str,
        message_key: str,
        context: Mapping[str, str] | None = None,
    ) -> str:
        """
        Template for a message.

        With a ``context``, the producer's message hook may choose another
        template; otherwise the registered template is used, falling back to
        the message key itself.
        """
        info = self._loggers.get(logger_slug)
        if info is None:
            return message_key
        if context is not None and info.message_hook is not None:
            template = info.message_hook(message_key, context)
            if template is not None:
                return template
        return info.messages.get(message_key, message_key)

    def render(self, event: Event) -> Markup:
        """HTML message of a stored event."""
        context = event.context
        return render_message(self.template_for(event.logger_slug, event.message_key, context), context)

    def plain_message(self, event: Event) -> str:
        """Unescaped message of a stored event, for terminals and exports."""
        context = event.context
        return render_plain(self.template_for(event.logger_slug, event.message_key, context), context)

    def details_html(self, event: Event) -> Markup:
        """
        Detail table of a stored event.

        Combines translated diff rows with the producer's extra detail rows.
        Returns an empty string when there is nothing to show.
        """
        context = event.context
        info = self._loggers.get(event.logger_slug)
        fields = info.diff_fields if info is not None else None
        rows = context_diff_rows(context, fields)
        extra: list[tuple[str, str]] = []
        if info is not None and info.details is not None:
            extra = info.details(event.message_key, context)
        return render_diff_table(rows, extra)

    # ------------------------------------------------------------------
    # Search support
    # ------------------------------------------------------------------

    def search_options(self) -> list[SearchOption]:
        """
        Message-type options for filter UIs.

        Each producer contributes one "all activity" entry followed by its
        search groups.
        """
        options = []
        for info in self._loggers.values():
            options.append(SearchOption(f"All {info.name} activity", [(info.slug, None)]))
            for label, keys in info.search_groups.items():
                options.append(SearchOption(label, [(info.slug, key) for key in keys]))
        return options

    def keys_matching(self, word: str) -> list[tuple[str, str]]:
        """``(slug, key)`` pairs whose template text contains ``word`` (case-insensitive)."""
        needle = word.lower()
        matches = []
        for info in self._loggers.values():
            for key, template in info.messages.items():
                if needle in template.lower():
                    matches.append((info.slug, key))
        return matches
