"""Tests for message templates, diff tables and the producer registry."""

from __future__ import annotations

from markupsafe import Markup

from auditlog_db.context import EventContext
from auditlog_db.models.orm import Event, EventContextRow
from auditlog_db.render import (
    DiffField,
    LoggerInfo,
    MessageRegistry,
    context_diff_rows,
    render_diff_table,
    render_message,
    render_plain,
    translate_value,
)
from auditlog_db.render.template import placeholders


def make_event(logger_slug, message_key, context):
    """Transient Event with context rows, no database needed."""
    return Event(
        logger_slug=logger_slug,
        message_key=message_key,
        context_rows=[EventContextRow(key=k, value=v) for k, v in context.items()],
    )


class TestTemplate:
    """Test placeholder interpolation."""

    def test_created_user_message(self):
        context = {"created_user_login": "bob", "created_user_role": "editor"}
        template = "Created user {created_user_login} with role {created_user_role}"
        assert render_message(template, context) == "Created user bob with role editor"
        assert render_plain(template, context) == "Created user bob with role editor"

    def test_missing_key_renders_empty(self):
        assert render_plain("Hello {name}!", {}) == "Hello !"
        assert render_message("Hello {name}!", {}) == Markup("Hello !")

    def test_values_escaped(self):
        """Context values are HTML-escaped; template text is not."""
        out = render_message("<b>User</b> {login}", {"login": '<script>"x"</script>'})
        assert isinstance(out, Markup)
        assert "<script>" not in out
        assert "&lt;script&gt;" in out
        assert out.startswith("<b>User</b>")

    def test_markup_values_not_escaped(self):
        out = render_message("{link}", {"link": Markup('<a href="/u/1">bob</a>')})
        assert out == '<a href="/u/1">bob</a>'

    def test_plain_does_not_escape(self):
        assert render_plain("{x}", {"x": "a < b"}) == "a < b"

    def test_no_placeholders(self):
        assert render_plain("Logged out", {"login": "bob"}) == "Logged out"

    def test_placeholders(self):
        assert placeholders("{a} and {b} but not { c }") == ["a", "b"]


class TestTranslateValue:
    """Test the value label lookup."""

    def test_checkbox(self):
        toolbar = DiffField("Toolbar", "checkbox", "Show", "Don't show")
        assert translate_value(toolbar, "true") == "Show"
        assert translate_value(toolbar, "false") == "Don't show"
        assert translate_value(toolbar, "") == "Don't show"

    def test_locale(self):
        language = DiffField("Language", "locale")
        assert translate_value(language, "en_US") == "English (en_US)"
        assert translate_value(language, "sv_SE") == "Swedish (sv_SE)"
        assert translate_value(language, "SITE_DEFAULT") == "Site Default"

    def test_unknown_values_pass_through(self):
        """The lookup is total: unmapped values come back unchanged."""
        assert translate_value(DiffField("Language", "locale"), "xx_YY") == "xx_YY"
        assert translate_value(DiffField("Role"), "editor") == "editor"
        assert translate_value(None, "raw") == "raw"


class TestDiffRows:
    """Test collecting diff rows from a context."""

    def test_rows_from_context(self):
        ctx = EventContext()
        ctx.diff("user_email", "old@example.org", "new@example.org")
        ctx.diff("rich_editing", "true", "false")
        fields = {
            "rich_editing": DiffField("Visual editor", "checkbox", "Enable", "Disable"),
            "user_email": DiffField("Email"),
        }
        rows = context_diff_rows(ctx, fields)
        assert rows == [
            ("Visual editor", "Enable", "Disable"),
            ("Email", "old@example.org", "new@example.org"),
        ]

    def test_unknown_fields_humanized(self):
        ctx = EventContext()
        ctx.diff("favourite_color", "red", "blue")
        assert context_diff_rows(ctx) == [("Favourite color", "red", "blue")]

    def test_round_trip_labels(self):
        """Diff(k, a, b) yields exactly one row with the translated labels."""
        ctx = EventContext()
        ctx.diff("locale", "SITE_DEFAULT", "en_US")
        rows = context_diff_rows(ctx, {"locale": DiffField("Language", "locale")})
        assert rows == [("Language", "Site Default", "English (en_US)")]


class TestDiffTable:
    """Test diff table HTML."""

    def test_table_markup(self):
        html = render_diff_table([("Email", "old@example.org", "new@example.org")])
        assert html.startswith('<table class="EventDetails__keyValueTable">')
        assert "<td>Email</td>" in html
        assert '<ins class="EventDetails__keyValueTable__addedThing">new@example.org</ins>' in html
        assert '<del class="EventDetails__keyValueTable__removedThing">old@example.org</del>' in html

    def test_unchanged_rows_omitted(self):
        assert render_diff_table([("Email", "a", "a")]) == ""

    def test_values_escaped(self):
        html = render_diff_table([("Nickname", "<i>old</i>", "<b>new</b>")])
        assert "<b>new</b>" not in html
        assert "&lt;b&gt;new&lt;/b&gt;" in html

    def test_detail_rows(self):
        html = render_diff_table([], [("Password", "Changed")])
        assert "<td>Password</td><td>Changed</td>" in html


class TestMessageRegistry:
    """Test producer vocabulary lookup and event rendering."""

    def test_template_fallback(self):
        registry = MessageRegistry()
        assert registry.template_for("Nope", "some_key") == "some_key"

    def test_render_event(self):
        registry = MessageRegistry([LoggerInfo("Demo", "Demo", messages={"hi": "Hi {who}"})])
        event = make_event("Demo", "hi", {"who": "<bob>"})
        assert registry.render(event) == "Hi &lt;bob&gt;"
        assert registry.plain_message(event) == "Hi <bob>"

    def test_register_replaces(self):
        registry = MessageRegistry()
        registry.register(LoggerInfo("Demo", "Demo", messages={"k": "one"}))
        registry.register(LoggerInfo("Demo", "Demo", messages={"k": "two"}))
        assert registry.template_for("Demo", "k") == "two"
        assert len(registry.loggers()) == 1
        assert "Demo" in registry

    def test_message_hook_picks_template(self):
        """The hook sees the stored context and may override the template."""
        seen = []

        def hook(message_key, context):
            seen.append((message_key, context.get("who")))
            return "Greeted themselves" if context.get("who") == "me" else None

        registry = MessageRegistry([LoggerInfo("Demo", "Demo", messages={"hi": "Hi {who}"}, message_hook=hook)])
        assert registry.plain_message(make_event("Demo", "hi", {"who": "me"})) == "Greeted themselves"
        assert registry.render(make_event("Demo", "hi", {"who": "bob"})) == "Hi bob"
        assert seen == [("hi", "me"), ("hi", "bob")]

    def test_template_without_context_skips_hook(self):
        registry = MessageRegistry(
            [LoggerInfo("Demo", "Demo", messages={"hi": "Hi {who}"}, message_hook=lambda key, ctx: "other")]
        )
        assert registry.template_for("Demo", "hi") == "Hi {who}"
        assert registry.template_for("Demo", "hi", {}) == "other"

    def test_details_html_for_unregistered_logger(self):
        registry = MessageRegistry()
        event = make_event("Other", "changed", {"color_prev": "red", "color_new": "blue"})
        html = registry.details_html(event)
        assert "<td>Color</td>" in html

    def test_search_options(self, registry):
        labels = [option.label for option in registry.search_options()]
        assert labels[0] == "All User Logger activity"
        assert "Failed user logins" in labels
        failed = next(o for o in registry.search_options() if o.label == "Failed user logins")
        assert failed.message_types == [
            ("UserLogger", "user_login_failed"),
            ("UserLogger", "user_unknown_login_failed"),
        ]

    def test_keys_matching(self, registry):
        matches = registry.keys_matching("PASSWORD")
        assert ("UserLogger", "user_password_reseted") in matches
        assert ("UserLogger", "user_logged_in") not in matches
