"""
Database engine and session management for the configuration store.
Supports SQLite (default) and any other SQLAlchemy URL.
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from mediahub.core.config import settings
from mediahub.core.logging_config import LogCategory, _sanitize_data

logger = logging.getLogger(LogCategory.DB)


def create_db_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL (defaults to settings.database_url).

    In-memory SQLite URLs share a single connection so every session sees the same data.
    """
    database_url = database_url or settings.database_url
    url = make_url(database_url)
    logger.info(f"Using database: {_sanitize_data(database_url)}")

    if url.get_backend_name() == "sqlite":
        is_sqlite_memory = url.database in (None, "", ":memory:")
        if not is_sqlite_memory:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        engine_kwargs = {
            "echo": False,
            "connect_args": {"check_same_thread": False},
        }
        if is_sqlite_memory:
            engine_kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **engine_kwargs)

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if not is_sqlite_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        return engine

    return create_engine(database_url, echo=False, pool_pre_ping=True)


def init_db(engine: Engine) -> None:
    """Create all tables registered on SQLModel metadata."""
    # Import models so their tables are registered
    from mediahub.models import service_config  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Database tables created")


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """Provide a session that rolls back on error and always closes."""
    session = Session(engine)
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
