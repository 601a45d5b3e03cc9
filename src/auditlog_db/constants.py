"""Constants and enumerations for auditlog_db."""

from __future__ import annotations

from enum import Enum

__all__ = [
    "RESERVED_PREFIX",
    "InitiatorKind",
    "MetaKey",
    "Severity",
]

# Context keys starting with this prefix belong to the engine.
RESERVED_PREFIX = "_"


class Severity(str, Enum):
    """Log level of an event, lowest to highest."""

    DEBUG = "debug"
    INFO = "info"
    NOTICE = "notice"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"
    ALERT = "alert"
    EMERGENCY = "emergency"


class InitiatorKind(str, Enum):
    """Discriminator stored for the initiator variant."""

    ANONYMOUS = "anonymous"
    USER = "user"
    AUTOMATION = "automation"
    UNKNOWN = "unknown"


class MetaKey(str, Enum):
    """Engine-owned context keys written alongside producer data."""

    MESSAGE_KEY = "_message_key"
    INITIATOR = "_initiator"
    USER_ID = "_user_id"
    USER_LOGIN = "_user_login"
    USER_EMAIL = "_user_email"
    OCCASION_ID = "_occasionsID"
    VIA = "_via"
