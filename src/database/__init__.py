"""
Database package: ORM base, engine/session management and repositories.
"""

from .models import Base, User, utcnow
from .connection import (
    close_engine,
    create_session_factory,
    enable_sqlite_foreign_keys,
    get_db_session,
    get_engine,
    get_session,
    get_session_factory,
    init_schema,
)
from .transaction import TransactionManager, transaction

__all__ = [
    "Base",
    "User",
    "utcnow",
    "close_engine",
    "create_session_factory",
    "enable_sqlite_foreign_keys",
    "get_db_session",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_schema",
    "TransactionManager",
    "transaction",
]
