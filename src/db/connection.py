"""Database connection management for the auto-reply engine.

Provides synchronous database access using SQLAlchemy. Supports SQLite
for development with PostgreSQL for production.

Usage:
    # Sync (for FastAPI Depends)
    from src.db.connection import get_db, init_db

    init_db()  # Create tables
    db = next(get_db())
    # ... use db session

    # Outside a request
    from src.db.connection import get_db_context

    with get_db_context() as db:
        ...
"""

import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from src.db.models import Base

_DEFAULT_DB_FILE = "autoreply.db"


# Configuration
def get_database_url() -> str:
    """Get database URL from environment or use default SQLite.

    Precedence:
    1. DATABASE_URL (canonical)
    2. AUTO_REPLY_DB_PATH (converted to sqlite URL)
    3. sqlite:///./autoreply.db
    """
    database_url = os.environ.get("DATABASE_URL", "").strip()
    if database_url:
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        return database_url

    db_path = os.environ.get("AUTO_REPLY_DB_PATH", "").strip()
    if db_path:
        if db_path.startswith("sqlite:"):
            return db_path
        return f"sqlite:///{db_path}"

    return f"sqlite:///./{_DEFAULT_DB_FILE}"


# Engine creation
DATABASE_URL = get_database_url()

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 15}
    if DATABASE_URL.startswith("sqlite")
    else {},
    echo=os.environ.get("SQL_ECHO", "").lower() == "true",
)


@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
    """Configure SQLite pragmas for correctness and concurrency.

    Enables:
    - foreign_keys=ON: Referential integrity (disabled by default in SQLite).
    - journal_mode=WAL: Concurrent readers plus a single writer, so workers
      racing on the same reply job serialize on the claim update.
    - synchronous=NORMAL: Commits are durable after WAL fsync.
    """
    if DATABASE_URL.startswith("sqlite"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA synchronous=NORMAL;")
        cursor.close()


# Session factories
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


# Dependency functions for FastAPI


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for synchronous operations.

    Intended for use with FastAPI's Depends() for request-scoped sessions.

    Yields:
        Session: SQLAlchemy session that will be closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """Context manager for database sessions outside of FastAPI.

    Used by background tasks that process reply jobs after the request
    that enqueued them has returned.

    Usage:
        with get_db_context() as db:
            AutoReplyService(db).process_job(message_id)
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# Initialization functions


def init_db() -> None:
    """Create all database tables synchronously.

    Uses the Base.metadata from models.py to create all defined tables.
    Safe to call multiple times - will not recreate existing tables.
    """
    Base.metadata.create_all(bind=engine)


def close_db() -> None:
    """Close the sync engine and dispose of connection pool."""
    engine.dispose()
