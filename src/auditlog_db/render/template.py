"""Message template interpolation.

Templates use ``{key}`` placeholders filled from the event context. HTML
output escapes every value unless it is already :class:`markupsafe.Markup`;
plain output is for terminals and exports.

Examples
--------
>>> render_plain("Created user {created_user_login} with role {created_user_role}",
...              {"created_user_login": "bob", "created_user_role": "editor"})
'Created user bob with role editor'
>>> str(render_message("Hello {name}", {"name": "<b>x</b>"}))
'Hello &lt;b&gt;x&lt;/b&gt;'
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from markupsafe import Markup, escape

__all__ = ["PLACEHOLDER", "placeholders", "render_message", "render_plain"]

# Keys may contain anything except braces and whitespace.
PLACEHOLDER = re.compile(r"\{([^{}\s]+)\}")


def placeholders(template: str) -> list[str]:
    """Placeholder names in order of appearance."""
    return PLACEHOLDER.findall(template)


def render_plain(template: str, context: Mapping[str, str]) -> str:
    """Interpolate without escaping; unknown keys render as empty strings."""
    return PLACEHOLDER.sub(lambda m: str(context.get(m.group(1), "")), template)


def render_message(template: str, context: Mapping[str, str]) -> Markup:
    """
    Interpolate ``template`` into HTML-safe markup.

    The template text itself is trusted; only context values are escaped.

    Parameters
    ----------
    template : str
        Message template with ``{key}`` placeholders
    context : Mapping[str, str]
        Event context

    Returns
    -------
    Markup
        Rendered message
    """

    def _sub(match: re.Match) -> str:
        value = context.get(match.group(1))
        if value is None:
            return ""
        return str(escape(value))

    return Markup(PLACEHOLDER.sub(_sub, template))
