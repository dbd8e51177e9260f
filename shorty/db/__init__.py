"""Database engine, sessions and transaction helpers."""

from shorty.db.base import DatabaseHealthCheck, async_session_factory, create_db_and_tables, engine, get_session
from shorty.db.session import SessionManager, SessionScope, db_transaction, get_db

__all__ = [
    "DatabaseHealthCheck",
    "SessionManager",
    "SessionScope",
    "async_session_factory",
    "create_db_and_tables",
    "db_transaction",
    "engine",
    "get_db",
    "get_session",
]
