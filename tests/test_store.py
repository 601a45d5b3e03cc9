"""Tests for EventStore capture, merging, lookup and retention."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from auditlog_db.config import Settings
from auditlog_db.db import create_database
from auditlog_db.errors import EventNotFoundError, ReservedKeyError, StoreError
from auditlog_db.loggers.user import FAILED_LOGIN_OCCASION
from auditlog_db.models.initiator import Anonymous, Authenticated, Automation, Unknown
from auditlog_db.models.orm import Event, EventContextRow
from auditlog_db.services import EventStore

ADMIN = Authenticated("1", "admin", "admin@example.org")


def all_events(database):
    with database.session() as session:
        return list(session.execute(select(Event).order_by(Event.id)).scalars())


class TestInsert:
    """Test inserting new events."""

    def test_capture_returns_id(self, store):
        event_id = store.capture("UserLogger", "user_logged_in", "info", ADMIN, {})
        event = store.get_by_id(event_id)
        assert event.logger_slug == "UserLogger"
        assert event.message_key == "user_logged_in"
        assert event.severity == "info"
        assert event.occurrence_count == 1
        assert event.first_seen == event.last_seen

    def test_meta_keys_written(self, store):
        event_id = store.capture("UserLogger", "user_logged_in", "info", ADMIN, {"ip": "10.0.0.1"})
        ctx = store.get_by_id(event_id).context
        assert ctx["_message_key"] == "user_logged_in"
        assert ctx["_initiator"] == "user"
        assert ctx["_user_id"] == "1"
        assert ctx["_user_login"] == "admin"
        assert ctx["_user_email"] == "admin@example.org"
        assert len(ctx["_occasionsID"]) == 64
        assert ctx.producer_items() == {"ip": "10.0.0.1"}

    def test_via_recorded(self, store):
        event_id = store.capture("Demo", "ran", "info", Unknown(), {}, via="cron")
        assert store.get_by_id(event_id).context["_via"] == "cron"
        assert "_via" not in store.get_by_id(store.capture("Demo", "other", "info", Unknown(), {})).context

    def test_initiator_variants_round_trip(self, store):
        """Each initiator kind is stored and rebuilt unchanged."""
        for i, initiator in enumerate([Anonymous(), ADMIN, Automation("WP-CLI"), Unknown()]):
            event_id = store.capture("Demo", f"k{i}", "info", initiator, {})
            assert store.get_by_id(event_id).initiator == initiator

    def test_ids_increase(self, store):
        ids = [store.capture("Demo", f"k{i}", "info", Unknown(), {}) for i in range(5)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 5

    def test_occurred_at_used(self, store, clock):
        when = clock.now - timedelta(hours=3)
        event_id = store.capture("Demo", "k", "info", Unknown(), {}, occurred_at=when)
        assert store.get_by_id(event_id).first_seen == when

    def test_severity_enum_and_string(self, store):
        from auditlog_db.constants import Severity

        a = store.capture("Demo", "a", Severity.ERROR, Unknown(), {})
        b = store.capture("Demo", "b", "critical", Unknown(), {})
        assert store.get_by_id(a).level is Severity.ERROR
        assert store.get_by_id(b).level is Severity.CRITICAL


class TestMerge:
    """Test occasion merging."""

    def test_failed_login_burst_merges(self, store, clock, database):
        """Three failed logins within 2 seconds become one event with count 3."""
        for _ in range(3):
            store.capture(
                "UserLogger",
                "user_login_failed",
                "warning",
                Anonymous(),
                {"login": "alice"},
                occasion_id=FAILED_LOGIN_OCCASION,
            )
            clock.advance(1)

        events = all_events(database)
        assert len(events) == 1
        assert events[0].occurrence_count == 3
        assert events[0].occasion_id == "UserLogger/failed_user_login"

    def test_merge_timestamps_and_context(self, store, clock):
        """first_seen stays, last_seen and context follow the latest call."""
        t_first = clock.now
        first = store.capture("Demo", "ping", "info", ADMIN, {"n": 1, "only_first": "x"}, occasion_id="o")
        clock.advance(5)
        second = store.capture("Demo", "ping", "info", ADMIN, {"n": 2}, occasion_id="o")
        clock.advance(5)
        third = store.capture("Demo", "ping", "info", ADMIN, {"n": 3}, occasion_id="o")

        assert first == second == third
        event = store.get_by_id(first)
        assert event.occurrence_count == 3
        assert event.first_seen == t_first
        assert event.last_seen == clock.now
        assert event.context.producer_items() == {"n": "3"}

    def test_shared_occasion_across_message_keys(self, store, clock):
        """Known and unknown-user failed logins share one occasion."""
        a = store.capture(
            "UserLogger", "user_login_failed", "warning", Anonymous(),
            {"login": "alice"}, occasion_id=FAILED_LOGIN_OCCASION,
        )
        clock.advance(1)
        b = store.capture(
            "UserLogger", "user_unknown_login_failed", "warning", Anonymous(),
            {"failed_username": "mallory"}, occasion_id=FAILED_LOGIN_OCCASION,
        )
        assert a == b
        event = store.get_by_id(a)
        assert event.message_key == "user_unknown_login_failed"
        assert event.context.producer_items() == {"failed_username": "mallory"}

    def test_implicit_fingerprint_merges(self, store, clock):
        a = store.capture("UserLogger", "user_logged_in", "info", ADMIN, {})
        clock.advance(2)
        b = store.capture("UserLogger", "user_logged_in", "info", ADMIN, {})
        assert a == b

    def test_different_activities_do_not_merge(self, store, clock, database):
        """Deleting two different users stays two events, even within the window."""
        alice = store.capture(
            "UserLogger", "user_deleted", "info", ADMIN,
            {"deleted_user_login": "alice", "deleted_user_email": "alice@example.org"},
        )
        clock.advance(5)
        bob = store.capture(
            "UserLogger", "user_deleted", "info", ADMIN,
            {"deleted_user_login": "bob", "deleted_user_email": "bob@example.org"},
        )

        assert alice != bob
        events = all_events(database)
        assert len(events) == 2
        assert store.get_by_id(alice).context["deleted_user_login"] == "alice"
        assert store.get_by_id(alice).occurrence_count == 1

    def test_identical_activity_merges(self, store, clock):
        ctx = {"deleted_user_login": "alice", "deleted_user_email": "alice@example.org"}
        a = store.capture("UserLogger", "user_deleted", "info", ADMIN, ctx)
        clock.advance(5)
        b = store.capture("UserLogger", "user_deleted", "info", ADMIN, ctx)
        assert a == b
        assert store.get_by_id(a).occurrence_count == 2

    def test_user_agent_does_not_split_occasion(self, store, clock):
        a = store.capture(
            "UserLogger", "user_logged_in", "info", ADMIN, {"server_http_user_agent": "Firefox"}
        )
        clock.advance(1)
        b = store.capture(
            "UserLogger", "user_logged_in", "info", ADMIN, {"server_http_user_agent": "curl"}
        )
        assert a == b
        assert store.get_by_id(a).context["server_http_user_agent"] == "curl"

    def test_different_users_do_not_merge(self, store):
        a = store.capture("UserLogger", "user_logged_in", "info", ADMIN, {})
        b = store.capture("UserLogger", "user_logged_in", "info", Authenticated("2", "bob"), {})
        assert a != b

    def test_window_boundary(self, store, clock, database):
        """A repeat after the window elapses starts a new row."""
        a = store.capture("Demo", "k", "info", Unknown(), {}, occasion_id="o")
        clock.advance(30)
        b = store.capture("Demo", "k", "info", Unknown(), {}, occasion_id="o")
        clock.advance(31)
        c = store.capture("Demo", "k", "info", Unknown(), {}, occasion_id="o")

        assert a == b
        assert c != a
        assert store.get_by_id(a).occurrence_count == 2
        assert store.get_by_id(c).occurrence_count == 1
        assert len(all_events(database)) == 2

    def test_interleaved_event_prevents_merge(self, store, clock):
        """A different event from the same producer closes the occasion."""
        a = store.capture("Demo", "k", "info", Unknown(), {}, occasion_id="o")
        store.capture("Demo", "other", "info", Unknown(), {}, occasion_id="p")
        c = store.capture("Demo", "k", "info", Unknown(), {}, occasion_id="o")
        assert c != a
        assert store.get_by_id(a).occurrence_count == 1

    def test_other_producer_does_not_interleave(self, store):
        """Events of other producers do not close an occasion."""
        a = store.capture("Demo", "k", "info", Unknown(), {}, occasion_id="o")
        store.capture("Other", "k", "info", Unknown(), {}, occasion_id="p")
        c = store.capture("Demo", "k", "info", Unknown(), {}, occasion_id="o")
        assert c == a

    def test_merge_replaces_context_rows(self, store, database):
        event_id = store.capture("Demo", "k", "info", Unknown(), {"a": 1, "b": 2}, occasion_id="o")
        store.capture("Demo", "k", "info", Unknown(), {"b": 3, "c": 4}, occasion_id="o")
        with database.session() as session:
            rows = session.execute(
                select(EventContextRow.key, EventContextRow.value).where(EventContextRow.event_fk == event_id)
            ).all()
        producer_rows = {k: v for k, v in rows if not k.startswith("_")}
        assert producer_rows == {"b": "3", "c": "4"}

    def test_implicit_disabled_never_merges(self, database, clock):
        settings = Settings(_env_file=None, implicit_occasions=False)
        store = EventStore(database, settings=settings, clock=clock)
        a = store.capture("Demo", "k", "info", Unknown(), {})
        b = store.capture("Demo", "k", "info", Unknown(), {})
        assert a != b
        assert "_occasionsID" not in store.get_by_id(a).context
        assert store.capture("Demo", "x", "info", Unknown(), {}, occasion_id="o") == store.capture(
            "Demo", "x", "info", Unknown(), {}, occasion_id="o"
        )


class TestValidation:
    """Test capture input validation."""

    def test_reserved_key_rejected(self, store, database):
        with pytest.raises(ReservedKeyError):
            store.capture("Demo", "k", "info", Unknown(), {"_user_id": "1"})
        assert all_events(database) == []

    def test_invalid_severity(self, store):
        with pytest.raises(ValueError):
            store.capture("Demo", "k", "loud", Unknown(), {})

    def test_empty_logger_or_key(self, store):
        with pytest.raises(ValueError):
            store.capture("", "k", "info", Unknown(), {})
        with pytest.raises(ValueError):
            store.capture("Demo", "", "info", Unknown(), {})

    def test_unsupported_initiator(self, store):
        with pytest.raises(TypeError):
            store.capture("Demo", "k", "info", "admin", {})

    def test_nested_context_value(self, store):
        with pytest.raises(TypeError):
            store.capture("Demo", "k", "info", Unknown(), {"roles": ["a", "b"]})


class TestStoreErrors:
    """Test storage failure handling."""

    def test_missing_tables_raise_store_error(self, settings, clock):
        """SQLAlchemy failures surface as StoreError with the cause chained."""
        db = create_database("sqlite://")
        store = EventStore(db, settings=settings, clock=clock)
        with pytest.raises(StoreError) as exc_info:
            store.capture("Demo", "k", "info", Unknown(), {})
        assert exc_info.value.__cause__ is not None
        db.close()

    def test_try_capture_swallows_and_logs(self, store, database):
        assert store.try_capture("Demo", "k", "info", Unknown(), {"_bad": "x"}) is None
        assert all_events(database) == []

    def test_try_capture_success(self, store):
        event_id = store.try_capture("Demo", "k", "info", Unknown(), {"ok": "y"})
        assert isinstance(event_id, int)


class TestLookup:
    """Test get_by_id and find_by_id."""

    def test_get_missing_raises(self, store):
        with pytest.raises(EventNotFoundError) as exc_info:
            store.get_by_id(999)
        assert exc_info.value.event_id == 999

    def test_find_missing_returns_none(self, store):
        assert store.find_by_id(999) is None

    def test_scenario_created_user_context(self, store):
        event_id = store.capture(
            "UserLogger", "user_created", "info", ADMIN,
            {"created_user_login": "bob", "created_user_role": "editor"},
        )
        event = store.get_by_id(event_id)
        assert event.context["created_user_login"] == "bob"
        assert event.context["created_user_role"] == "editor"


class TestPurge:
    """Test the retention purge."""

    def test_purge_older_than(self, store, clock, database):
        old = store.capture("Demo", "old", "info", Unknown(), {"a": "1"}, occurred_at=clock.now - timedelta(days=90))
        recent = store.capture("Demo", "recent", "info", Unknown(), {"a": "2"}, occurred_at=clock.now - timedelta(days=5))

        assert store.purge(60) == 1
        assert store.find_by_id(old) is None
        assert store.find_by_id(recent) is not None

        with database.session() as session:
            orphans = session.execute(
                select(EventContextRow).where(EventContextRow.event_fk == old)
            ).all()
        assert orphans == []

    def test_purge_uses_settings_default(self, store, clock):
        store.capture("Demo", "old", "info", Unknown(), {}, occurred_at=clock.now - timedelta(days=61))
        assert store.purge() == 1

    def test_purge_rejects_zero_days(self, store):
        with pytest.raises(ValueError):
            store.purge(0)
