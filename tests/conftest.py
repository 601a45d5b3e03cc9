"""pytest configuration for auditlog_db tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from auditlog_db.config import Settings
from auditlog_db.db import create_database
from auditlog_db.loggers import default_registry
from auditlog_db.models.orm import Base
from auditlog_db.query import EventQuery
from auditlog_db.services import EventStore
from auditlog_db.utils import configure_sqlite

T0 = datetime(2024, 5, 14, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock; call it to read, ``advance`` to move it."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.now = self.now + timedelta(seconds=seconds, **kwargs)
        return self.now


@pytest.fixture
def engine():
    """Create in-memory SQLite engine with the event schema."""
    engine = create_engine("sqlite://")
    configure_sqlite(engine, in_memory=True)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Create SQLAlchemy session for testing."""
    with Session(engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        occasion_window_seconds=30,
        default_page_size=5,
        max_page_size=10,
        retention_days=60,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def database():
    """In-memory database with tables created."""
    db = create_database("sqlite://")
    db.create_tables()
    yield db
    db.close()


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def store(database, settings, registry, clock):
    return EventStore(database, settings=settings, registry=registry, clock=clock)


@pytest.fixture
def query(database, settings, registry, clock):
    return EventQuery(database, settings=settings, registry=registry, clock=clock)
