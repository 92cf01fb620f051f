"""Root-level pytest fixtures for all tests.

Provides shared fixtures including:
- In-memory SQLite session for unit tests
- File-based SQLite database for multi-session (concurrency) tests
- Fake generation backend and recording publisher
"""

import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# src.db.connection builds its engine at import time; point it at a scratch
# file before any src import so tests never touch ./autoreply.db.
if not os.environ.get("DATABASE_URL") and not os.environ.get("AUTO_REPLY_DB_PATH"):
    os.environ["AUTO_REPLY_DB_PATH"] = str(
        Path(tempfile.mkdtemp(prefix="autoreply-tests-")) / "app.db"
    )

from src.db.models import Base  # noqa: E402
from tests.helpers import FakeGenerationBackend, RecordingPublisher  # noqa: E402


# ============================================================================
# Pytest Markers
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests that take a long time to run"
    )


@pytest.fixture(autouse=True)
def _generation_env(monkeypatch):
    """Tests never reach the real generation backend."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("AUTO_REPLY_CRON_SECRET", raising=False)
    monkeypatch.delenv("AUTO_REPLY_API_KEY", raising=False)
    for name in (
        "AUTO_REPLY_DEFAULT_TIMEZONE",
        "AUTO_REPLY_MODEL",
        "AUTO_REPLY_HISTORY_LIMIT",
        "AUTO_REPLY_MAX_CHARS",
    ):
        monkeypatch.delenv(name, raising=False)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """In-memory SQLite for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def file_based_db() -> Generator[str, None, None]:
    """Create a file-based SQLite database for multi-session tests.

    Unlike in-memory databases, this persists across connections, so
    several sessions (one per thread) see the same rows.
    """
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    engine.dispose()

    yield path

    os.unlink(path)
    for suffix in ("-wal", "-shm"):
        if os.path.exists(path + suffix):
            os.unlink(path + suffix)


@pytest.fixture
def file_session_factory(file_based_db: str):
    """sessionmaker bound to the file database, WAL and busy timeout on."""
    engine = create_engine(
        f"sqlite:///{file_based_db}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )

    @event.listens_for(engine, "connect")
    def _pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.close()

    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


# ============================================================================
# Collaborator Fixtures
# ============================================================================


@pytest.fixture
def fake_backend() -> FakeGenerationBackend:
    return FakeGenerationBackend()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()
