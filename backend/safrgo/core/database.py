"""
Database utilities and connection management.

WHAT: SQLAlchemy engine, session factory and lifecycle helpers
WHY: One place that owns connections to the conversation store
HOW: SQLAlchemy 2 sync engine, WAL + foreign keys on SQLite, session scope helper
"""

from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, text, event
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

IS_SQLITE = settings.DATABASE_URL.startswith("sqlite")

# Ensure data directory exists for file-backed SQLite
if IS_SQLITE and ":memory:" not in settings.DATABASE_URL:
    data_dir = Path(settings.DATABASE_URL.replace("sqlite:///", "")).parent
    data_dir.mkdir(parents=True, exist_ok=True)

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if IS_SQLITE else {},
    echo=settings.DEBUG,
    future=True
)


def enable_sqlite_pragmas(dbapi_conn, connection_record):
    """Enable WAL mode and FK enforcement on SQLite connections."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


if IS_SQLITE:
    event.listen(engine, "connect", enable_sqlite_pragmas)

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False
)

# Base for models
Base = declarative_base()


@contextmanager
def get_db():
    """
    Context manager for database session.

    Usage:
        with get_db() as db:
            # use db session
            pass

    Yields:
        Session: SQLAlchemy session
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def ping_database() -> dict:
    """
    Check database connectivity.

    Returns:
        Dict with status and info
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()

        return {
            "available": True,
            "dialect": engine.dialect.name,
            "error": None
        }
    except Exception as e:
        logger.error(f"Database ping failed: {e}")
        return {
            "available": False,
            "dialect": engine.dialect.name,
            "error": str(e)
        }


def init_db():
    """Create all tables."""
    # Register models on Base.metadata
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(f"Database initialized ({engine.dialect.name})")


def close_db():
    """Close database connections."""
    engine.dispose()
    logger.info("Database connections closed")
