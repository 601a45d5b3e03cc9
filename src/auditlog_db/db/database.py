"""Database wrapper: engine creation, schema setup and transactional sessions.

Use :func:`create_database` to get the right implementation for a URL:

- ``sqlite://`` / ``sqlite:///:memory:`` → in-memory SQLite on a single
  shared connection (tests, one-off tools)
- ``sqlite:///path/to/auditlog.sqlite`` → file SQLite in WAL mode
- anything else (e.g. ``postgresql://``) → generic server database
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from auditlog_db.utils import SQLITE_BEGIN_OPTION, configure_sqlite

if TYPE_CHECKING:
    from collections.abc import Generator

    from sqlalchemy.engine import Engine

__all__ = [
    "Database",
    "SQLiteDatabase",
    "ServerDatabase",
    "create_database",
]


class Database(ABC):
    """
    Base class for the event database.

    Parameters
    ----------
    url : str
        SQLAlchemy database URL
    echo : bool, optional
        Echo SQL statements, by default False

    Attributes
    ----------
    engine : Engine
        SQLAlchemy engine
    dialect : str
        Database dialect name ("sqlite", "postgresql", ...)
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine = self._create_engine(url, echo)
        self.dialect = self.engine.dialect.name
        self._session_factory = sessionmaker(self.engine, expire_on_commit=False)

    @abstractmethod
    def _create_engine(self, url: str, echo: bool) -> Engine:
        """Create the engine with dialect-specific configuration."""

    @contextmanager
    def session(self, *, write_lock: bool = False) -> Generator[Session, None, None]:
        """
        Provide a transactional session.

        Commits on success, rolls back on any exception and always closes.
        Objects stay usable after commit (``expire_on_commit=False``).

        Parameters
        ----------
        write_lock : bool, optional
            Take the database write lock when the transaction starts, so a
            read-then-write unit of work is serialized against other
            connections, by default False

        Yields
        ------
        Session
            SQLAlchemy session
        """
        session = self._session_factory()
        try:
            if write_lock:
                self._begin_write(session)
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _begin_write(self, session: Session) -> None:
        """Start the transaction holding the write lock.

        Server databases lock the rows they read with ``SELECT ... FOR
        UPDATE``; nothing is needed up front.
        """

    def create_tables(self) -> None:
        """Create all ORM tables (idempotent)."""
        from auditlog_db.models.orm import Base

        Base.metadata.create_all(self.engine)
        logger.debug(f"Tables ensured on {self.engine.url.render_as_string(hide_password=True)}")

    def close(self) -> None:
        """Dispose all pooled connections."""
        self.engine.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class SQLiteDatabase(Database):
    """
    SQLite database.

    In-memory databases keep one shared connection (``StaticPool``), since
    every new connection to ``:memory:`` would be a separate, empty database.
    File databases open a connection per session and run in WAL mode.
    """

    def _create_engine(self, url: str, echo: bool) -> Engine:
        in_memory = _is_memory_url(url)
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if in_memory else NullPool,
        )
        configure_sqlite(engine, in_memory=in_memory)
        return engine

    def _begin_write(self, session: Session) -> None:
        # BEGIN IMMEDIATE: SQLite has no row locks and ignores FOR UPDATE.
        session.connection(execution_options={SQLITE_BEGIN_OPTION: "IMMEDIATE"})


class ServerDatabase(Database):
    """Client/server database (PostgreSQL, MySQL) with a regular connection pool."""

    def _create_engine(self, url: str, echo: bool) -> Engine:
        return create_engine(url, echo=echo, pool_pre_ping=True)


def _is_memory_url(url: str) -> bool:
    database = make_url(url).database
    return database in (None, "", ":memory:")


def create_database(database_url: str, echo: bool = False) -> Database:
    """
    Create the event database for a URL.

    Parameters
    ----------
    database_url : str
        Database connection URL
    echo : bool, optional
        Echo SQL statements for debugging, by default False

    Returns
    -------
    Database
        ``SQLiteDatabase`` for ``sqlite://`` URLs, ``ServerDatabase`` otherwise

    Examples
    --------
    >>> db = create_database("sqlite://")
    >>> db.create_tables()
    >>> with db.session() as session:
    ...     pass
    """
    if make_url(database_url).get_backend_name() == "sqlite":
        return SQLiteDatabase(database_url, echo=echo)
    return ServerDatabase(database_url, echo=echo)
