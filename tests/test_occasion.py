"""Tests for occasion fingerprints and the merge policy."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

from auditlog_db.config import Settings
from auditlog_db.models.orm import Event
from auditlog_db.occasion import OccasionLocks, OccasionPolicy, fingerprint

T0 = datetime(2024, 5, 14, 12, 0, 0, tzinfo=timezone.utc)


class TestFingerprint:
    """Test fingerprint derivation."""

    def test_explicit_id_verbatim(self):
        fp = fingerprint("UserLogger", "user_login_failed", "UserLogger/failed_user_login", {"login": "a"})
        assert fp == "UserLogger/failed_user_login"

    def test_implicit_is_deterministic(self):
        """Same inputs give the same 64-char digest."""
        a = fingerprint("UserLogger", "user_logged_in", None, {"login": "a"}, user_id="1")
        b = fingerprint("UserLogger", "user_logged_in", None, {"login": "a"}, user_id="1")
        assert a == b
        assert len(a) == 64

    def test_non_identity_keys_ignored(self):
        """Context outside the identity keys never changes the fingerprint."""
        a = fingerprint("L", "k", None, {"ip": "1.1.1.1", "agent": "x"}, identity_keys=("ip",))
        b = fingerprint("L", "k", None, {"ip": "1.1.1.1", "agent": "y"}, identity_keys=("ip",))
        assert a == b

    def test_identity_keys_distinguish(self):
        a = fingerprint("L", "k", None, {"ip": "1.1.1.1"}, identity_keys=("ip",))
        b = fingerprint("L", "k", None, {"ip": "2.2.2.2"}, identity_keys=("ip",))
        assert a != b

    def test_whole_context_by_default(self):
        """Without identity keys, every producer value is part of the fingerprint."""
        a = fingerprint("UserLogger", "user_deleted", None, {"deleted_user_login": "alice"}, user_id="1")
        b = fingerprint("UserLogger", "user_deleted", None, {"deleted_user_login": "bob"}, user_id="1")
        assert a != b

    def test_ignored_keys_do_not_count(self):
        ignore = ("server_http_user_agent",)
        a = fingerprint("L", "k", None, {"ip": "1", "server_http_user_agent": "Firefox"}, ignore_keys=ignore)
        b = fingerprint("L", "k", None, {"ip": "1", "server_http_user_agent": "curl"}, ignore_keys=ignore)
        c = fingerprint("L", "k", None, {"ip": "1"}, ignore_keys=ignore)
        assert a == b == c

    def test_identity_keys_override_ignore_keys(self):
        """Configured identity keys alone decide, even if they name an ignored key."""
        a = fingerprint("L", "k", None, {"agent": "x", "n": "1"}, identity_keys=("agent",), ignore_keys=("agent",))
        b = fingerprint("L", "k", None, {"agent": "y", "n": "1"}, identity_keys=("agent",), ignore_keys=("agent",))
        assert a != b

    def test_user_and_key_distinguish(self):
        base = fingerprint("L", "k", None, {}, user_id="1")
        assert base != fingerprint("L", "k", None, {}, user_id="2")
        assert base != fingerprint("L", "other", None, {}, user_id="1")
        assert base != fingerprint("M", "k", None, {}, user_id="1")


class TestOccasionPolicy:
    """Test merge decisions."""

    def _latest(self, occasion_id, seconds_ago, now=T0):
        return Event(occasion_id=occasion_id, last_seen_at=now - timedelta(seconds=seconds_ago))

    def test_from_settings(self):
        settings = Settings(
            _env_file=None,
            occasion_window_seconds=12,
            occasion_identity_keys="ip, agent",
            occasion_ignore_keys="request_id",
            implicit_occasions=False,
        )
        policy = OccasionPolicy.from_settings(settings)
        assert policy.window == timedelta(seconds=12)
        assert policy.identity_keys == ("ip", "agent")
        assert policy.ignore_keys == ("request_id",)
        assert policy.implicit is False

    def test_merge_within_window(self):
        policy = OccasionPolicy(window=timedelta(seconds=30))
        assert policy.should_merge(self._latest("fp", 10), "fp", T0)

    def test_window_is_inclusive(self):
        policy = OccasionPolicy(window=timedelta(seconds=30))
        assert policy.should_merge(self._latest("fp", 30), "fp", T0)
        assert not policy.should_merge(self._latest("fp", 31), "fp", T0)

    def test_different_fingerprint_never_merges(self):
        policy = OccasionPolicy(window=timedelta(seconds=30))
        assert not policy.should_merge(self._latest("other", 1), "fp", T0)

    def test_no_candidate_or_no_fingerprint(self):
        policy = OccasionPolicy(window=timedelta(seconds=30))
        assert not policy.should_merge(None, "fp", T0)
        assert not policy.should_merge(self._latest(None, 1), None, T0)

    def test_naive_stored_timestamp(self):
        """Timestamps read back from SQLite are naive UTC."""
        policy = OccasionPolicy(window=timedelta(seconds=30))
        latest = Event(occasion_id="fp", last_seen_at=(T0 - timedelta(seconds=5)).replace(tzinfo=None))
        assert policy.should_merge(latest, "fp", T0)

    def test_implicit_disabled(self):
        """Without implicit occasions only explicit ids produce fingerprints."""
        policy = OccasionPolicy(window=timedelta(seconds=30), implicit=False)
        assert policy.fingerprint_for("L", "k", None, {}) is None
        assert policy.fingerprint_for("L", "k", "explicit", {}) == "explicit"


    def test_policy_ignores_volatile_keys(self):
        policy = OccasionPolicy(window=timedelta(seconds=30), ignore_keys=("server_http_user_agent",))
        a = policy.fingerprint_for("L", "k", None, {"ip": "1", "server_http_user_agent": "Firefox"})
        b = policy.fingerprint_for("L", "k", None, {"ip": "1", "server_http_user_agent": "curl"})
        c = policy.fingerprint_for("L", "k", None, {"ip": "2", "server_http_user_agent": "curl"})
        assert a == b
        assert a != c


class TestOccasionLocks:
    """Test the named lock registry."""

    def test_same_name_same_lock(self):
        locks = OccasionLocks()
        with locks.hold("UserLogger"):
            pass
        with locks.hold("UserLogger"):
            pass
        assert len(locks) == 1

    def test_serializes_holders(self):
        """Holders of one name never overlap."""
        locks = OccasionLocks()
        active = []
        overlaps = []

        def worker():
            for _ in range(50):
                with locks.hold("p"):
                    active.append(1)
                    if len(active) > 1:
                        overlaps.append(1)
                    active.pop()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert overlaps == []
