"""SQLAlchemy database session management.

This module provides database engine configuration, session factory,
and dependency injection for FastAPI endpoints.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import Session, sessionmaker

from src.server.config import settings

logger = logging.getLogger(__name__)

# SQLAlchemy declarative base for ORM models
Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-aware UTC now, used for row timestamps."""
    return datetime.now(timezone.utc)


# Global engine instance
_engine: Engine | None = None
_SessionLocal: sessionmaker | None = None


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_sqlite_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for a SQLite URL, creating the file's directory.

    Args:
        database_url: ``sqlite:///`` URL
        echo: Log SQL statements

    Returns:
        Configured SQLAlchemy engine
    """
    db_file = database_url.split("sqlite:///", 1)[-1]
    if db_file and db_file != ":memory:":
        db_dir = Path(db_file).parent
        if not db_dir.exists():
            db_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created database directory: {db_dir}")

    return create_engine(
        database_url,
        connect_args={"check_same_thread": False},  # Needed for SQLite
        pool_pre_ping=True,
        echo=echo,
    )


def init_engine() -> Engine:
    """Initialize the server's SQLAlchemy engine from settings.

    Returns:
        Configured SQLAlchemy engine
    """
    global _engine

    if _engine is not None:
        return _engine

    _engine = create_sqlite_engine(settings.database_url, echo=settings.debug)
    logger.info(f"Database engine initialized: {settings.database_url}")
    return _engine


def get_session_factory() -> sessionmaker:
    """Get SQLAlchemy session factory."""
    global _SessionLocal

    if _SessionLocal is None:
        engine = init_engine()
        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=engine,
        )

    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency for database sessions.

    Provides a database session that is automatically closed after use.

    Yields:
        SQLAlchemy database session
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(engine: Engine | None = None) -> None:
    """Create all database tables.

    Development and CLI convenience; the server schema is managed by
    Alembic migrations.
    """
    # Register models on Base.metadata
    from src.server.database import models  # noqa: F401

    engine = engine or init_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def check_database_connection() -> bool:
    """Check if database connection is working.

    Returns:
        True if connection is successful, False otherwise
    """
    try:
        from sqlalchemy import text

        engine = init_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
