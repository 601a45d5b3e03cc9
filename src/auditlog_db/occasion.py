"""Occasion fingerprints and the merge policy.

An *occasion* is a burst of repeated, identical activity (a script hammering
the login form, a user saving a profile twice). Events sharing an occasion
fingerprint collapse into one stored row with a running count, as long as
they arrive within the recency window and nothing else from the same producer
was logged in between.

Implicit fingerprints cover the whole producer context (minus volatile keys),
so two different activities never share one. Producers that want
detail-varying events counted together pass an explicit occasion id.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from auditlog_db.utils import as_utc, occasion_hash

if TYPE_CHECKING:
    from auditlog_db.config import Settings
    from auditlog_db.models.orm import Event

__all__ = ["OccasionLocks", "OccasionPolicy", "fingerprint"]


def fingerprint(
    logger_slug: str,
    message_key: str,
    explicit_id: str | None,
    context: Mapping[str, str],
    *,
    user_id: str | None = None,
    identity_keys: tuple[str, ...] = (),
    ignore_keys: tuple[str, ...] = (),
) -> str:
    """
    Compute the occasion fingerprint of an event.

    Parameters
    ----------
    logger_slug : str
        Producing logger
    message_key : str
        Message type within the logger
    explicit_id : str | None
        Producer-supplied occasion id, used verbatim when given
    context : Mapping[str, str]
        Producer context
    user_id : str | None
        Authenticated initiator id, if any
    identity_keys : tuple[str, ...]
        When given, the only context keys that take part in implicit
        fingerprints
    ignore_keys : tuple[str, ...]
        Volatile keys left out when ``identity_keys`` is empty

    Returns
    -------
    str
        The explicit id, or a SHA-256 hex digest

    Examples
    --------
    >>> fingerprint("UserLogger", "user_login_failed", "UserLogger/failed_user_login", {})
    'UserLogger/failed_user_login'
    """
    if explicit_id:
        return explicit_id
    if identity_keys:
        identity = {key: context[key] for key in identity_keys if key in context}
    else:
        identity = {key: value for key, value in context.items() if key not in ignore_keys}
    return occasion_hash(logger_slug, message_key, user_id, identity)


@dataclass(frozen=True)
class OccasionPolicy:
    """
    Decides whether a new occurrence merges into the producer's latest event.

    Attributes
    ----------
    window : timedelta
        Maximum age of the latest occurrence for a merge (inclusive)
    identity_keys : tuple[str, ...]
        Context keys that alone make up implicit fingerprints (empty: all)
    ignore_keys : tuple[str, ...]
        Context keys never part of implicit fingerprints
    implicit : bool
        Derive fingerprints when no explicit occasion id is supplied
    """

    window: timedelta
    identity_keys: tuple[str, ...] = ()
    ignore_keys: tuple[str, ...] = ()
    implicit: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> OccasionPolicy:
        return cls(
            window=settings.occasion_window,
            identity_keys=settings.identity_keys,
            ignore_keys=settings.ignore_keys,
            implicit=settings.implicit_occasions,
        )

    def fingerprint_for(
        self,
        logger_slug: str,
        message_key: str,
        explicit_id: str | None,
        context: Mapping[str, str],
        user_id: str | None = None,
    ) -> str | None:
        """Fingerprint under this policy; None when the event must never merge."""
        if not explicit_id and not self.implicit:
            return None
        return fingerprint(
            logger_slug,
            message_key,
            explicit_id,
            context,
            user_id=user_id,
            identity_keys=self.identity_keys,
            ignore_keys=self.ignore_keys,
        )

    def should_merge(
        self,
        latest: Event | None,
        occasion_id: str | None,
        now: datetime,
    ) -> bool:
        """
        Return True if ``latest`` is still an open occasion for ``occasion_id``.

        ``latest`` must be the producer's most recent event, so an interleaved
        event with another fingerprint always prevents a merge.
        """
        if latest is None or occasion_id is None:
            return False
        if latest.occasion_id != occasion_id:
            return False
        elapsed = as_utc(now) - latest.last_seen
        # Clock skew between writers can make elapsed negative; that is still "recent".
        return elapsed <= self.window


class OccasionLocks:
    """
    Registry of named in-process locks.

    The store keys locks by producer slug: the merge candidate is the
    producer's latest event, so every fingerprint of one producer shares a
    lock. This only queues threads of one store; the database write lock
    taken by the capture session is what serializes separate stores and
    processes.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _get(self, name: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, name: str) -> Iterator[None]:
        lock = self._get(name)
        with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)
