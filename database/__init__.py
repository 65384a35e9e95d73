"""
Database Package Initialization.

============================================================
ALERT HISTORY PERSISTENCE LAYER
============================================================

SQLAlchemy engine, session factory and transaction scope
used by the alert history repository.

============================================================
"""

from .engine import (
    Base,
    DEFAULT_DATABASE_URL,
    get_database_url,
    create_database_engine,
    create_session_factory,
    transaction_scope,
    verify_database_connection,
    initialize_database,
)


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "create_database_engine",
    "create_session_factory",
    "transaction_scope",
    "verify_database_connection",
    "initialize_database",
]
