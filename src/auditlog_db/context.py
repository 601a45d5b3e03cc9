"""Event context: the flat string mapping attached to every event.

Producers put whatever their message template and detail view need into the
context. Values are always strings; keys starting with ``_`` are reserved for
the engine (see :class:`~auditlog_db.constants.MetaKey`).

Examples
--------
>>> ctx = EventContext()
>>> ctx.set("edited_user_login", "bob")
>>> ctx.diff("user_email", "bob@old.example", "bob@new.example")
True
>>> sorted(ctx)
['edited_user_login', 'user_email_new', 'user_email_prev']
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from auditlog_db.constants import RESERVED_PREFIX
from auditlog_db.errors import ReservedKeyError

__all__ = ["EventContext", "coerce_value", "is_reserved"]

PREV_SUFFIX = "_prev"
NEW_SUFFIX = "_new"


def is_reserved(key: str) -> bool:
    return key.startswith(RESERVED_PREFIX)


def coerce_value(value: Any) -> str | None:
    """
    Convert a producer value to its stored string form.

    ``None`` means "no value" and is returned unchanged so callers can skip
    the key. Booleans become ``"true"``/``"false"``.

    Raises
    ------
    TypeError
        If the value is a nested structure
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple, set, frozenset)):
        msg = f"Context values must be scalars, got {type(value).__name__}"
        raise TypeError(msg)
    return str(value)


class EventContext(Mapping[str, str]):
    """Validated, string-valued context mapping."""

    __slots__ = ("_data",)

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> EventContext:
        """
        Build a context from producer data.

        All keys are validated before anything is stored, so a reserved key
        anywhere in ``data`` leaves no partially built context behind.

        Raises
        ------
        ReservedKeyError
            If any key starts with the reserved prefix
        """
        ctx = cls()
        if not data:
            return ctx
        if isinstance(data, EventContext):
            ctx._data = dict(data._data)
            return ctx
        for key in data:
            if is_reserved(key):
                raise ReservedKeyError(key)
        for key, value in data.items():
            ctx.set(key, value)
        return ctx

    @classmethod
    def from_stored(cls, data: Mapping[str, str]) -> EventContext:
        """Rehydrate a context read from storage, reserved keys included."""
        ctx = cls()
        ctx._data = dict(data)
        return ctx

    def set(self, key: str, value: Any) -> None:
        """
        Store ``value`` under ``key``.

        Raises
        ------
        ReservedKeyError
            If ``key`` starts with the reserved prefix
        """
        if is_reserved(key):
            raise ReservedKeyError(key)
        self._store(key, value)

    def _set_meta(self, key: str, value: Any) -> None:
        """Engine-only path for reserved keys."""
        self._store(key, value)

    def _store(self, key: str, value: Any) -> None:
        if not key:
            raise ValueError("Context keys must be non-empty")
        coerced = coerce_value(value)
        if coerced is None:
            return
        self._data[key] = coerced

    def diff(self, key: str, old_value: Any, new_value: Any) -> bool:
        """
        Record a before/after pair when the values differ.

        Values are compared in their stored string form, so ``1`` and
        ``"1"`` count as equal.

        Returns
        -------
        bool
            True if ``{key}_prev`` / ``{key}_new`` were stored
        """
        if is_reserved(key):
            raise ReservedKeyError(key)
        old = coerce_value(old_value)
        new = coerce_value(new_value)
        old = "" if old is None else old
        new = "" if new is None else new
        if old == new:
            return False
        self._data[f"{key}{PREV_SUFFIX}"] = old
        self._data[f"{key}{NEW_SUFFIX}"] = new
        return True

    def diff_keys(self) -> list[str]:
        """Field names that have both a ``_prev`` and a ``_new`` entry."""
        keys = []
        for name in self._data:
            if name.endswith(PREV_SUFFIX):
                base = name[: -len(PREV_SUFFIX)]
                if f"{base}{NEW_SUFFIX}" in self._data:
                    keys.append(base)
        return keys

    def producer_items(self) -> dict[str, str]:
        """Context without engine meta keys."""
        return {k: v for k, v in self._data.items() if not is_reserved(k)}

    def to_dict(self) -> dict[str, str]:
        return dict(self._data)

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"EventContext({self._data!r})"
