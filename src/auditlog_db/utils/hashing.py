"""Hashing utilities for occasion fingerprints."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping

__all__ = ["canonical_json", "occasion_hash"]


def canonical_json(data: Mapping) -> str:
    """
    Serialize a mapping deterministically.

    Keys are sorted and separators compacted so equal mappings always give
    the same string regardless of insertion order.

    Examples
    --------
    >>> canonical_json({"b": 1, "a": 2})
    '{"a":2,"b":1}'
    """
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def occasion_hash(
    logger_slug: str,
    message_key: str,
    user_id: str | None,
    identity: Mapping[str, str],
) -> str:
    """
    Compute a stable fingerprint for an implicit occasion.

    Parameters
    ----------
    logger_slug : str
        Producing logger
    message_key : str
        Message type within the logger
    user_id : str | None
        Id of the authenticated initiator, if any
    identity : Mapping[str, str]
        Context values that distinguish one occasion from another

    Returns
    -------
    str
        SHA-256 hexadecimal digest (64 characters)

    Examples
    --------
    >>> h1 = occasion_hash("UserLogger", "user_logged_in", "1", {})
    >>> h2 = occasion_hash("UserLogger", "user_logged_in", "1", {})
    >>> h1 == h2, len(h1)
    (True, 64)
    """
    canonical = canonical_json(
        {
            "logger": logger_slug,
            "message_key": message_key,
            "user_id": user_id,
            "identity": dict(identity),
        }
    )
    return hashlib.sha256(canonical.encode()).hexdigest()
