"""User logger vocabulary: logins, logouts, profile edits and account changes.

Hosts register :data:`USER_LOGGER` with their :class:`MessageRegistry` and call
:meth:`EventStore.capture` with ``logger_slug="UserLogger"`` and one of the
message keys below. :func:`profile_update_context` builds the context of a
``user_updated_profile`` event from before/after snapshots of a user record.

Examples
--------
>>> ctx = profile_update_context(
...     {"user_email": "bob@old.example", "locale": ""},
...     {"user_email": "bob@new.example", "locale": "sv_SE"},
...     edited_user_login="bob",
... )
>>> ctx["locale_prev"], ctx["locale_new"]
('SITE_DEFAULT', 'sv_SE')
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from auditlog_db.constants import MetaKey
from auditlog_db.context import EventContext
from auditlog_db.render.diff import SITE_DEFAULT, DiffField
from auditlog_db.render.registry import LoggerInfo

__all__ = [
    "FAILED_LOGIN_OCCASION",
    "PROFILE_FIELDS",
    "SLUG",
    "USER_LOGGER",
    "profile_update_context",
    "user_details",
    "user_message",
]

SLUG = "UserLogger"

# Both failed-login kinds share one occasion so a brute-force run against
# known and unknown usernames collapses into one row.
FAILED_LOGIN_OCCASION = f"{SLUG}/failed_user_login"

MESSAGES: dict[str, str] = {
    "user_login_failed": 'Failed to login with username "{login}" (incorrect password entered)',
    "user_unknown_login_failed": 'Failed to login with username "{failed_username}" (username does not exist)',
    "user_logged_in": "Logged in",
    "user_unknown_logged_in": "Unknown user logged in",
    "user_logged_out": "Logged out",
    "user_updated_profile": "Edited the profile for user {edited_user_login} ({edited_user_email})",
    "user_created": "Created user {created_user_login} ({created_user_email}) with role {created_user_role}",
    "user_deleted": "Deleted user {deleted_user_login} ({deleted_user_email})",
    "user_password_reseted": "Reset their password",
    "user_requested_password_reset_link": (
        "Requested a password reset link for user with login '{user_login}' and email '{user_email}'"
    ),
    "user_session_destroy_others": "Logged out from all other sessions",
    "user_session_destroy_everywhere": 'Logged out "{user_display_name}" from all sessions',
    "user_admin_email_confirm_screen_view": "Viewed admin email confirm screen",
    "user_admin_email_confirm_correct_clicked": "Verified that administration email for website is correct",
}

SEARCH_GROUPS: dict[str, list[str]] = {
    "Successful user logins": ["user_logged_in", "user_unknown_logged_in"],
    "Failed user logins": ["user_login_failed", "user_unknown_login_failed"],
    "User logouts": ["user_logged_out"],
    "Created users": ["user_created"],
    "User profile updates": ["user_updated_profile"],
    "User deletions": ["user_deleted"],
}

PROFILE_FIELDS: dict[str, DiffField] = {
    "rich_editing": DiffField("Visual editor", "checkbox", "Enable", "Disable"),
    "admin_color": DiffField("Colour Scheme"),
    "comment_shortcuts": DiffField("Keyboard shortcuts", "checkbox", "Enable", "Disable"),
    "show_admin_bar_front": DiffField("Toolbar", "checkbox", "Show", "Don't show"),
    "locale": DiffField("Language", "locale"),
    "role": DiffField("Role"),
    "first_name": DiffField("First name"),
    "last_name": DiffField("Last name"),
    "nickname": DiffField("Nickname"),
    "display_name": DiffField("Display name"),
    "user_email": DiffField("Email"),
    "user_url": DiffField("Website"),
    "description": DiffField("Description"),
    "aim": DiffField("AIM"),
    "yim": DiffField("Yahoo IM"),
    "jabber": DiffField("Jabber / Google Talk"),
}

CREATED_USER_FIELDS: dict[str, str] = {
    "created_user_first_name": "First name",
    "created_user_last_name": "Last name",
    "created_user_url": "Website",
}


def user_details(message_key: str, context: Mapping[str, str]) -> list[tuple[str, str]]:
    """Extra detail rows for profile updates and created users."""
    rows: list[tuple[str, str]] = []
    if message_key == "user_updated_profile":
        if "edited_user_password_changed" in context:
            rows.append(("Password", "Changed"))
    elif message_key == "user_created":
        for key, label in CREATED_USER_FIELDS.items():
            value = context.get(key, "").strip()
            if value:
                rows.append((label, value))
        if context.get("send_user_notification", "").strip() == "1":
            rows.append(("Notification", "Yes, email with account details was sent"))
    return rows


def user_message(message_key: str, context: Mapping[str, str]) -> str | None:
    """Use first-person wording when a user edited their own profile."""
    if message_key == "user_updated_profile":
        user_id = context.get(MetaKey.USER_ID.value, "")
        if user_id and context.get("edited_user_id") == user_id:
            return "Edited their profile"
    return None


def profile_update_context(
    before: Mapping[str, Any],
    after: Mapping[str, Any],
    **extra: Any,
) -> EventContext:
    """
    Build a ``user_updated_profile`` context from two user snapshots.

    Only fields in :data:`PROFILE_FIELDS` are diffed. A changed
    ``user_pass`` is recorded as ``edited_user_password_changed`` without
    storing either value. An empty locale means the site default and an
    empty ``comment_shortcuts`` means off.

    Parameters
    ----------
    before, after : Mapping[str, Any]
        User record before and after the edit
    **extra
        Additional context such as ``edited_user_id`` or ``edited_user_login``

    Raises
    ------
    ReservedKeyError
        If ``extra`` contains a reserved key
    """
    ctx = EventContext.from_mapping(extra)
    for key in PROFILE_FIELDS:
        if key not in before and key not in after:
            continue
        old = before.get(key, "")
        new = after.get(key, "")
        if key == "locale":
            old = old or SITE_DEFAULT
            new = new or SITE_DEFAULT
        elif key == "comment_shortcuts":
            old = old or "false"
            new = new or "false"
        ctx.diff(key, old, new)

    if "user_pass" in after and before.get("user_pass") != after.get("user_pass"):
        ctx.set("edited_user_password_changed", "1")
    return ctx


USER_LOGGER = LoggerInfo(
    slug=SLUG,
    name="User Logger",
    description="Logs user logins, logouts, and failed logins",
    messages=MESSAGES,
    search_groups=SEARCH_GROUPS,
    diff_fields=PROFILE_FIELDS,
    details=user_details,
    message_hook=user_message,
)
