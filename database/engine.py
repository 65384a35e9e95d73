"""
Database - Core Engine.

============================================================
ALERT HISTORY PERSISTENCE
============================================================

SQLAlchemy plumbing for the optional alert history store.

- Declarative base shared by all ORM models
- Engine creation (SQLite by default, any SQLAlchemy URL works)
- Session factory and explicit transaction scope
- Failures surface as PersistenceError

The alert engine never depends on this store for dedup;
it is an audit trail only.

============================================================
"""

import os
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from core.exceptions import PersistenceError


logger = logging.getLogger(__name__)

# =============================================================
# DECLARATIVE BASE
# =============================================================

Base = declarative_base()

DEFAULT_DATABASE_URL = "sqlite:///./data/market_alerts.db"


# =============================================================
# DATABASE ENGINE
# =============================================================

def get_database_url(url: Optional[str] = None) -> str:
    """Resolve the database URL: argument, then DATABASE_URL, then the SQLite default."""
    if url:
        return url

    load_dotenv()
    url = os.getenv("DATABASE_URL")

    if not url:
        url = DEFAULT_DATABASE_URL
        logger.info(f"DATABASE_URL not set, using default: {url}")

    return url


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") == "sqlite:")


def create_database_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine.

    Args:
        url: Database URL (resolved via get_database_url when omitted)
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    database_url = get_database_url(url)
    logger.info(f"Creating database engine for: {database_url.split('@')[-1]}")

    kwargs = {"echo": echo, "future": True}

    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if _is_memory_sqlite(database_url):
            # One shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
        else:
            db_path = database_url.split("///", 1)[-1]
            if db_path:
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(database_url, **kwargs)

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        logger.debug("Database connection established")

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Build a session factory bound to an engine."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


# =============================================================
# SESSION MANAGEMENT
# =============================================================

@contextmanager
def transaction_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs.
    Rolls back on ANY exception and raises PersistenceError.

    Usage:
        with transaction_scope(factory) as session:
            session.add(record)
    """
    session = session_factory()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise PersistenceError(f"Transaction failed: {e}", cause=e) from e
    except PersistenceError:
        session.rollback()
        raise
    except Exception as e:
        logger.error(f"Transaction failed with unexpected error: {e}")
        session.rollback()
        raise PersistenceError(f"Transaction failed: {e}", cause=e) from e
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================

def verify_database_connection(engine: Engine) -> bool:
    """
    Verify database connection is working.

    Raises:
        PersistenceError if connection fails
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        logger.info("Database connection verified successfully")
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        raise PersistenceError(
            f"Cannot connect to database: {e}", operation="connect", cause=e,
        ) from e


def initialize_database(engine: Engine) -> None:
    """
    Verify the connection and create tables for all registered models.

    Models must be imported before this is called.
    """
    verify_database_connection(engine)

    try:
        Base.metadata.create_all(bind=engine)
        logger.info(f"Database tables ready: {sorted(Base.metadata.tables)}")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise PersistenceError(
            f"Table creation failed: {e}", operation="create_tables", cause=e,
        ) from e
