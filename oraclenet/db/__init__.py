"""Persistent identity storage for OracleNet."""

from oraclenet.db.models import Base, Oracle
from oraclenet.db.session import SessionLocal, engine, get_db, get_db_session, init_database

__all__ = [
    "Base",
    "Oracle",
    "get_db",
    "get_db_session",
    "init_database",
    "engine",
    "SessionLocal",
]
