"""Database-specific utilities and configurations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import event

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

__all__ = ["SQLITE_BEGIN_OPTION", "configure_sqlite"]

# Execution option naming the BEGIN mode ("DEFERRED", "IMMEDIATE", "EXCLUSIVE").
SQLITE_BEGIN_OPTION = "sqlite_begin"


def configure_sqlite(engine: Engine, *, in_memory: bool = False) -> None:
    """Register SQLite pragmas and transaction control on the engine.

    Foreign keys are off by default in SQLite; context rows rely on
    ``ON DELETE CASCADE`` when the retention purge removes events. File
    databases switch to WAL so readers never block the capture writer.

    The driver's own implicit BEGIN is disabled and every transaction is
    started by the ``begin`` hook instead. A connection carrying the
    :data:`SQLITE_BEGIN_OPTION` execution option starts with that mode, so a
    capture can take the write lock before it reads the merge candidate.

    Parameters
    ----------
    engine : Engine
        SQLite engine to configure
    in_memory : bool, optional
        Skip WAL for ``:memory:`` databases, by default False

    Notes
    -----
    ``busy_timeout`` makes concurrent writers wait instead of failing with
    ``database is locked``; it also applies to ``BEGIN IMMEDIATE``.
    """

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, _connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=10000")
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")
