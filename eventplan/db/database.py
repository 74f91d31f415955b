"""
Database connection and session management.

This module provides the SQLAlchemy engine configuration. PostgreSQL is the
production target (row-level locks back the per-event roster serialization);
SQLite is supported for local development and tests.
"""

import os
from pathlib import Path
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from eventplan.utils.logging_config import get_logger


logger = get_logger("db")

# Look for .env in the project root (parent of the package)
env_path = Path(__file__).parent.parent.parent / '.env'
if env_path.exists():
    load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.environ.get(
    "EVENTPLAN_DB_URL",
    "sqlite:///./eventplan.db"
)


def build_engine(database_url: str) -> Engine:
    """
    Create an engine with dialect-appropriate pooling.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Configured Engine
    """
    if database_url.startswith("sqlite"):
        # SQLite doesn't support pool_size, max_overflow, or pool_recycle
        engine = create_engine(
            database_url,
            connect_args={'check_same_thread': False},
            echo=False,
            future=True
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_engine(
        database_url,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=False,
        future=True
    )


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    """Turn on FK enforcement for each new SQLite connection."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True
)


def get_db() -> Generator[Session, None, None]:
    """
    Yield a database session and close it afterwards.

    Intended as a dependency for the request layer:

        db = next(get_db())
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Initialize database tables.

    Creates every table registered on the declarative Base.
    """
    from eventplan.models import Base
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created", extra={"url": engine.url.render_as_string()})


def dispose_engine():
    """
    Dispose of the engine and close all connections.

    Useful for cleanup in CLI tools and tests.
    """
    engine.dispose()
