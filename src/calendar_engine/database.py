"""
Database configuration and session management for the local store.

Provides:
- Engine creation with SQLite/PostgreSQL specific configuration
- Session factory bound to an engine
- Context manager for transactional sessions
- Database initialization utilities
"""

import logging
import os
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from calendar_engine.config import get_settings

logger = logging.getLogger(__name__)


def create_db_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create an engine configured for the database type.

    Args:
        database_url: Connection URL (default: Settings.database_url)

    Returns:
        SQLAlchemy Engine
    """
    settings = get_settings()
    url = database_url or settings.database_url
    echo = settings.log_level == "DEBUG"  # Log SQL statements in debug mode

    if "sqlite" in url.lower():
        _ensure_sqlite_directory(url)
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},  # Store calls run on a worker thread
            poolclass=StaticPool,  # Single connection, also keeps :memory: databases alive
            echo=echo,
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """Enable foreign key constraints in SQLite."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    # PostgreSQL-specific configuration
    return create_engine(
        url,
        pool_size=5,
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True,  # Test connections before using them
        echo=echo,
    )


def _ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    path = url.split("///", 1)[-1]
    if not path or path == ":memory:" or url.endswith(":memory:"):
        return
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory with explicit commits."""
    return sessionmaker(
        autocommit=False,  # Explicit commits required
        autoflush=False,  # Don't flush automatically before queries
        expire_on_commit=False,  # Records are mapped to dataclasses after commit
        bind=engine,
    )


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for a transactional session.

    Commits on success, rolls back on exception, always closes.

    Usage:
        with session_scope(factory) as db:
            db.add(record)
    """
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine: Engine) -> None:
    """
    Create all tables that don't exist yet.
    """
    from calendar_engine.models import Base

    logger.info("Initializing local store schema")
    Base.metadata.create_all(bind=engine)
