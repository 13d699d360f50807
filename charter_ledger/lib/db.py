"""
Database connection and initialization module.

Manages SQLite database creation, connection pooling, and schema initialization.
"""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

# Base class for all models
Base = declarative_base()

# Default database path (can be overridden by environment variable)
DEFAULT_DB_PATH = Path.home() / ".charter-ledger" / "ledger.db"

# Global engine and session factory
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker[Session]] = None


def _enable_foreign_keys(dbapi_conn: Any, connection_record: Any) -> None:
    """Enable foreign key constraints for SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs nest correctly
    dbapi_conn.isolation_level = None


def _begin_transaction(conn: Any) -> None:
    """Emit an explicit BEGIN (pysqlite would otherwise defer it)."""
    conn.exec_driver_sql("BEGIN")


def get_db_path() -> Path:
    """Database path from CHARTER_LEDGER_DB_PATH, else the default."""
    env_db_path = os.environ.get("CHARTER_LEDGER_DB_PATH")
    return Path(env_db_path) if env_db_path else DEFAULT_DB_PATH


def get_engine(db_path: Optional[Path] = None) -> Engine:
    """
    Get or create the SQLAlchemy engine.

    Args:
        db_path: Optional custom database path. Defaults to ~/.charter-ledger/ledger.db
                 Can also be set via CHARTER_LEDGER_DB_PATH environment variable.

    Returns:
        SQLAlchemy Engine instance
    """
    global _engine

    if _engine is None:
        if db_path is None:
            db_path = get_db_path()

        db_path.parent.mkdir(parents=True, exist_ok=True)

        db_url = f"sqlite:///{db_path}"
        _engine = create_engine(
            db_url,
            echo=False,  # Set to True for SQL debugging
            connect_args={"check_same_thread": False},
        )

        event.listen(_engine, "connect", _enable_foreign_keys)
        event.listen(_engine, "begin", _begin_transaction)

    return _engine


def reset_engine() -> None:
    """Reset the global engine and session factory.

    This is used for testing to ensure a fresh database connection.
    **WARNING: Only use this in tests!**
    """
    global _engine, _SessionLocal

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionLocal = None


def get_session() -> Session:
    """
    Get a new database session.

    Returns:
        SQLAlchemy Session instance
    """
    global _SessionLocal

    if _SessionLocal is None:
        engine = get_engine()
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    return _SessionLocal()


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Context manager for a unit of work with automatic commit/rollback.

    Every business operation (record + accounting event + journal) runs
    inside one of these, so either all of it is committed or none of it.

    Usage:
        with db_session() as session:
            result = create_and_process_event(session, ...)
            # Commits automatically when context exits successfully

    Yields:
        SQLAlchemy Session instance
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(db_path: Optional[Path] = None) -> None:
    """
    Initialize the database by creating all tables.

    Args:
        db_path: Optional custom database path. Defaults to ~/.charter-ledger/ledger.db
    """
    engine = get_engine(db_path)

    # Import all models to ensure they're registered with Base
    import charter_ledger.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def reset_db(db_path: Optional[Path] = None) -> None:
    """
    Drop all tables and recreate them. **WARNING: This deletes all data!**

    Args:
        db_path: Optional custom database path
    """
    engine = get_engine(db_path)

    import charter_ledger.models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def db_exists(db_path: Optional[Path] = None) -> bool:
    """
    Check if the database file exists.

    Args:
        db_path: Optional custom database path

    Returns:
        True if database file exists
    """
    if db_path is None:
        db_path = get_db_path()
    return db_path.exists()
