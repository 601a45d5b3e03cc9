"""Logging setup for the CLI and host applications."""

from __future__ import annotations

import sys

from loguru import logger

__all__ = ["setup_logging"]

_FORMAT = (
    "<green>{time:HH:mm:ss}</green> <level>{level: <8}</level> "
    "<cyan>{name}</cyan>: {message}"
)


def _stderr_sink(message) -> None:
    # Look up sys.stderr per message; it may be swapped after setup (test runners).
    sys.stderr.write(message)


def setup_logging(level: str = "INFO", *, serialize: bool = False) -> None:
    """Configure the loguru sink.

    Args:
        level: Minimum level to emit
        serialize: Emit JSON lines instead of colored text
    """
    logger.remove()
    logger.add(
        _stderr_sink,
        level=level.upper(),
        format=_FORMAT,
        serialize=serialize,
        colorize=sys.stderr.isatty(),
    )
    logger.debug(f"Logging configured: level={level.upper()}, json={serialize}")
