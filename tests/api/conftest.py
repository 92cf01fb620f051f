"""Pytest fixtures for API tests.

Provides a test client wired to an in-memory database and a fake
generation backend, so enqueue and job routes run end to end.
"""

from collections.abc import Generator
from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.api.main import app
from src.api.middleware.auth import reset_rate_limiter
from src.api.routes import auto_reply_jobs
from src.db.connection import get_db
from src.db.models import Base
from tests.helpers import FakeGenerationBackend


@pytest.fixture
def test_db() -> Generator[Session, None, None]:
    """Create an in-memory SQLite database for testing.

    Creates all tables, yields a session, and cleans up after test.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def api_backend() -> FakeGenerationBackend:
    return FakeGenerationBackend()


@pytest.fixture
def client(
    test_db: Session, api_backend: FakeGenerationBackend, monkeypatch
) -> Generator[TestClient, None, None]:
    """Create a TestClient with overridden database and backend dependencies.

    Background reply jobs reuse the test session instead of opening a
    session on the application engine.
    """

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    @contextmanager
    def override_db_context():
        yield test_db

    monkeypatch.setattr(auto_reply_jobs, "get_db_context", override_db_context)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[auto_reply_jobs.get_generation_backend] = lambda: api_backend
    reset_rate_limiter()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    reset_rate_limiter()
