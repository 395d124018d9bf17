"""Database configuration for the recurring task engine."""
from typing import Generator
from sqlmodel import create_engine, Session
from sqlalchemy import event
from sqlalchemy.engine import Engine
import logging

from recurring_engine.config import DATABASE_URL

logger = logging.getLogger(__name__)


def build_engine(database_url: str = DATABASE_URL, **kwargs) -> Engine:
    """Create a SQLModel engine, applying SQLite pragmas when needed."""
    if not database_url.startswith("sqlite"):
        logger.info("Using PostgreSQL database")
        return create_engine(database_url, echo=False, pool_pre_ping=True, **kwargs)

    logger.info(f"Using SQLite database: {database_url}")
    connect_args = kwargs.pop("connect_args", {})
    connect_args.setdefault("check_same_thread", False)
    sqlite_engine = create_engine(database_url, echo=False, connect_args=connect_args, **kwargs)

    @event.listens_for(sqlite_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        # WAL lets preview reads run while an advancement holds the write lock
        cursor.execute("PRAGMA foreign_keys=ON")
        if ":memory:" not in database_url:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return sqlite_engine


engine = build_engine()


def get_session() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    with Session(engine) as session:
        yield session
