"""Database session management for the offline verification-log client.

This module provides SQLAlchemy engine and session management:
- Database: owns an engine and a session factory for one database URL
- Database.session(): context manager with commit/rollback semantics
- Database.init(): idempotent, additive schema creation
- get_database() / reset_database(): process-scoped instance

SQLite is the expected backend for a single-writer device. Other URLs
are accepted for development.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

log = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        kwargs = {
            "echo": False,
            "pool_pre_ping": True,
            "connect_args": {"check_same_thread": False},
        }
        if url in ("sqlite://", "sqlite:///:memory:"):
            # In-memory databases only live as long as their single connection
            from sqlalchemy.pool import StaticPool

            kwargs["poolclass"] = StaticPool
        return kwargs
    return {
        "echo": False,
        "pool_pre_ping": True,
    }


class Database:
    """Engine and session factory for the local store.

    Each store component opens its own short-lived sessions through
    session(); nothing holds a session across a network round trip.
    """

    def __init__(self, url: str):
        """Create the engine (no I/O until first use).

        Args:
            url: SQLAlchemy database URL.
        """
        self.url = url
        self.engine: Engine = create_engine(url, **_engine_kwargs(url))
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
        )

        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragma)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Context manager for database sessions.

        Usage:
            with database.session() as db:
                db.add(row)

        The session is committed on success and rolled back on exception.
        """
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def init(self) -> None:
        """Initialize the database by creating all tables.

        Tables are created idempotently (CREATE IF NOT EXISTS), then the
        per-collection schema versions are recorded. Nothing existing is
        altered destructively.

        For SQLite: Also ensures the database directory exists.
        """
        from app.db.migrations import apply_schema_versions
        from app.db.models import Base

        log.info(f"Initializing database at {self.url}")

        if self.url.startswith("sqlite:///"):
            db_path = self.url.replace("sqlite:///", "")
            if db_path and db_path != ":memory:":
                db_dir = Path(db_path).parent
                db_dir.mkdir(parents=True, exist_ok=True)

        Base.metadata.create_all(bind=self.engine)
        apply_schema_versions(self)
        log.info("Database tables created successfully")

    def dispose(self) -> None:
        """Close all pooled connections."""
        self.engine.dispose()


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite PRAGMAs.

    - journal_mode=WAL: Appends survive a crash without torn records
    - busy_timeout=5000: Wait up to 5s for locks
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


# Process-scoped instance
_database: Optional[Database] = None


def get_database() -> Database:
    """Get or create the Database singleton from configuration."""
    global _database
    if _database is None:
        from app.core.config import DATABASE_URL

        _database = Database(DATABASE_URL)
        _database.init()
    return _database


def reset_database() -> None:
    """Dispose and forget the singleton (for testing)."""
    global _database
    if _database is not None:
        _database.dispose()
    _database = None
