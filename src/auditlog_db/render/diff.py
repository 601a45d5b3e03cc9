"""Before/after diff rows and their HTML table.

Producers record changes with :meth:`EventContext.diff`, which stores
``{field}_prev`` and ``{field}_new``. At display time those pairs become
labelled rows, values are translated through the producer's field table
(checkbox labels, language names) and the rows are rendered as a small
key/value table with ``<ins>`` for the new value and ``<del>`` for the old.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Literal, NamedTuple

from markupsafe import Markup

from auditlog_db.context import NEW_SUFFIX, PREV_SUFFIX

__all__ = [
    "LANGUAGE_NAMES",
    "SITE_DEFAULT",
    "DiffField",
    "DiffRow",
    "context_diff_rows",
    "humanize_key",
    "render_diff_table",
    "translate_value",
]

SITE_DEFAULT = "SITE_DEFAULT"

# English names of common locales; codes not listed are shown verbatim.
LANGUAGE_NAMES: dict[str, str] = {
    "en_US": "English",
    "en_GB": "English (UK)",
    "en_AU": "English (Australia)",
    "en_CA": "English (Canada)",
    "de_DE": "German",
    "de_CH": "German (Switzerland)",
    "fr_FR": "French (France)",
    "fr_CA": "French (Canada)",
    "es_ES": "Spanish (Spain)",
    "es_MX": "Spanish (Mexico)",
    "it_IT": "Italian",
    "nl_NL": "Dutch",
    "sv_SE": "Swedish",
    "nb_NO": "Norwegian (Bokmål)",
    "da_DK": "Danish",
    "fi": "Finnish",
    "pl_PL": "Polish",
    "pt_PT": "Portuguese (Portugal)",
    "pt_BR": "Portuguese (Brazil)",
    "ru_RU": "Russian",
    "ja": "Japanese",
    "zh_CN": "Chinese (China)",
}

TABLE_CLASS = "EventDetails__keyValueTable"
ADDED_CLASS = "EventDetails__keyValueTable__addedThing"
REMOVED_CLASS = "EventDetails__keyValueTable__removedThing"


@dataclass(frozen=True)
class DiffField:
    """
    Display metadata for one diffable context field.

    Attributes
    ----------
    label : str
        Row title
    kind : {"text", "checkbox", "locale"}
        How stored values are translated for display
    true_label, false_label : str
        Checkbox labels
    """

    label: str
    kind: Literal["text", "checkbox", "locale"] = "text"
    true_label: str = "Enabled"
    false_label: str = "Disabled"


class DiffRow(NamedTuple):
    label: str
    old: str
    new: str


def humanize_key(key: str) -> str:
    """
    Fallback label for fields without a table entry.

    Examples
    --------
    >>> humanize_key("user_url")
    'User url'
    """
    text = key.replace("_", " ").strip()
    return text[:1].upper() + text[1:]


def translate_value(field: DiffField | None, value: str) -> str:
    """
    Turn a stored value into its display label.

    Every input has an output: values without a translation are returned
    unchanged.

    Examples
    --------
    >>> translate_value(DiffField("Toolbar", "checkbox", "Show", "Don't show"), "false")
    "Don't show"
    >>> translate_value(DiffField("Language", "locale"), "en_US")
    'English (en_US)'
    >>> translate_value(DiffField("Language", "locale"), "SITE_DEFAULT")
    'Site Default'
    """
    if field is None:
        return value
    if field.kind == "checkbox":
        if value == "true":
            return field.true_label
        if value in ("false", ""):
            return field.false_label
        return value
    if field.kind == "locale":
        if value in (SITE_DEFAULT, ""):
            return "Site Default"
        name = LANGUAGE_NAMES.get(value)
        if name is not None:
            return f"{name} ({value})"
        return value
    return value


def context_diff_rows(
    context: Mapping[str, str],
    fields: Mapping[str, DiffField] | None = None,
) -> list[DiffRow]:
    """
    Collect translated diff rows from ``_prev``/``_new`` pairs.

    Fields listed in ``fields`` come first, in table order; other pairs
    follow in context order with a humanized label.
    """
    fields = fields or {}
    names: list[str] = []
    for key in context:
        if key.endswith(PREV_SUFFIX):
            base = key[: -len(PREV_SUFFIX)]
            if f"{base}{NEW_SUFFIX}" in context and base not in names:
                names.append(base)

    ordered = [name for name in fields if name in names]
    ordered += [name for name in names if name not in fields]

    rows = []
    for name in ordered:
        field = fields.get(name)
        label = field.label if field is not None else humanize_key(name)
        old = translate_value(field, context[f"{name}{PREV_SUFFIX}"])
        new = translate_value(field, context[f"{name}{NEW_SUFFIX}"])
        rows.append(DiffRow(label, old, new))
    return rows


def render_diff_table(
    rows: Iterable[tuple[str, str, str]],
    details: Iterable[tuple[str, str]] = (),
) -> Markup:
    """
    Render diff rows (and plain detail rows) as an HTML table.

    Parameters
    ----------
    rows : Iterable[tuple[str, str, str]]
        ``(label, old, new)`` triples; rows with ``old == new`` are omitted
    details : Iterable[tuple[str, str]]
        ``(label, value)`` pairs appended after the diff rows

    Returns
    -------
    Markup
        ``<table>`` markup, or an empty string when nothing remains

    Examples
    --------
    >>> render_diff_table([("Email", "a@x", "a@x")])
    Markup('')
    """
    cells = []
    for label, old, new in rows:
        if old == new:
            continue
        change = Markup('<ins class="{}">{}</ins> <del class="{}">{}</del>').format(
            ADDED_CLASS, new, REMOVED_CLASS, old
        )
        cells.append(Markup("<tr><td>{}</td><td>{}</td></tr>").format(label, change))
    for label, value in details:
        cells.append(Markup("<tr><td>{}</td><td>{}</td></tr>").format(label, value))

    if not cells:
        return Markup("")
    return Markup('<table class="{}">').format(TABLE_CLASS) + Markup("").join(cells) + Markup("</table>")
