"""Initiator variant: who or what caused an event.

The variant is closed. Every function here handles all four cases and
raises ``TypeError`` for anything else.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from auditlog_db.constants import InitiatorKind

__all__ = [
    "Anonymous",
    "Authenticated",
    "Automation",
    "Initiator",
    "Unknown",
    "describe_initiator",
    "initiator_columns",
    "initiator_from_columns",
    "initiator_kind",
]


@dataclass(frozen=True)
class Anonymous:
    """Unauthenticated web visitor."""


@dataclass(frozen=True)
class Authenticated:
    """Logged-in actor."""

    user_id: str
    login: str | None = None
    email: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "user_id", str(self.user_id))


@dataclass(frozen=True)
class Automation:
    """Command-line tool, cron job or other automation."""

    tool: str = "cli"


@dataclass(frozen=True)
class Unknown:
    """Initiator could not be determined."""


Initiator = Union[Anonymous, Authenticated, Automation, Unknown]


def _unsupported(initiator: Any) -> TypeError:
    return TypeError(f"Unsupported initiator type: {type(initiator).__name__}")


def initiator_kind(initiator: Initiator) -> InitiatorKind:
    if isinstance(initiator, Anonymous):
        return InitiatorKind.ANONYMOUS
    if isinstance(initiator, Authenticated):
        return InitiatorKind.USER
    if isinstance(initiator, Automation):
        return InitiatorKind.AUTOMATION
    if isinstance(initiator, Unknown):
        return InitiatorKind.UNKNOWN
    raise _unsupported(initiator)


def initiator_columns(initiator: Initiator) -> dict[str, str | None]:
    """Flatten an initiator into ``Event`` column values."""
    columns: dict[str, str | None] = {
        "initiator_kind": initiator_kind(initiator).value,
        "initiator_user_id": None,
        "initiator_login": None,
        "initiator_email": None,
        "initiator_tool": None,
    }
    if isinstance(initiator, Authenticated):
        columns["initiator_user_id"] = initiator.user_id
        columns["initiator_login"] = initiator.login
        columns["initiator_email"] = initiator.email
    elif isinstance(initiator, Automation):
        columns["initiator_tool"] = initiator.tool
    return columns


def initiator_from_columns(
    kind: str,
    user_id: str | None = None,
    login: str | None = None,
    email: str | None = None,
    tool: str | None = None,
) -> Initiator:
    """Rebuild the variant from stored columns."""
    kind = InitiatorKind(kind)
    if kind is InitiatorKind.ANONYMOUS:
        return Anonymous()
    if kind is InitiatorKind.USER:
        return Authenticated(user_id=user_id or "", login=login, email=email)
    if kind is InitiatorKind.AUTOMATION:
        return Automation(tool=tool or "cli")
    return Unknown()


def describe_initiator(initiator: Initiator) -> str:
    """
    Human-readable initiator label.

    Examples
    --------
    >>> describe_initiator(Authenticated("3", "luca", "luca@example.org"))
    'luca (luca@example.org)'
    >>> describe_initiator(Anonymous())
    'Anonymous web user'
    """
    if isinstance(initiator, Authenticated):
        name = initiator.login or f"user #{initiator.user_id}"
        if initiator.email:
            return f"{name} ({initiator.email})"
        return name
    if isinstance(initiator, Anonymous):
        return "Anonymous web user"
    if isinstance(initiator, Automation):
        return initiator.tool
    if isinstance(initiator, Unknown):
        return "Unknown"
    raise _unsupported(initiator)
