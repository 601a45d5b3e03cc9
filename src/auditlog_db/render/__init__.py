"""Display-time rendering: message templates, diff tables, producer registry.

Everything here is a pure function of a stored event; nothing is written
back to storage.
"""

from __future__ import annotations

__all__ = [
    "DiffField",
    "DiffRow",
    "LoggerInfo",
    "MessageRegistry",
    "SearchOption",
    "context_diff_rows",
    "render_diff_table",
    "render_message",
    "render_plain",
    "translate_value",
]

from .diff import DiffField, DiffRow, context_diff_rows, render_diff_table, translate_value
from .registry import LoggerInfo, MessageRegistry, SearchOption
from .template import render_message, render_plain
