"""Engine and session factory for the identity database.

Request handlers take a session from get_db() and commit their own writes.
Code outside a request uses get_db_session(), which commits on exit.
SQLite (the default and the test database) runs on one shared connection;
any other URL gets a regular connection pool.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from oraclenet.config import DATABASE_URL

log = logging.getLogger(__name__)

_url = make_url(DATABASE_URL)
IS_SQLITE = _url.get_backend_name() == "sqlite"


def _engine_options() -> dict:
    if IS_SQLITE:
        # "sqlite://" is in-memory; one connection keeps it a single database
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {"pool_size": 5, "max_overflow": 10, "pool_recycle": 1800}


engine = create_engine(_url, pool_pre_ping=True, **_engine_options())
SessionLocal = sessionmaker(bind=engine, autoflush=False)

log.info(f"Identity database backend: {_url.get_backend_name()}")


@event.listens_for(engine, "connect")
def _on_connect(dbapi_connection, connection_record):
    if IS_SQLITE:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a request-scoped session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Session for non-request code: commit on success, roll back on error."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_database() -> None:
    """Create the oracles table if missing. Called from the app lifespan."""
    from oraclenet.db.models import Base

    if IS_SQLITE and _url.database and _url.database != ":memory:":
        Path(_url.database).parent.mkdir(parents=True, exist_ok=True)

    Base.metadata.create_all(bind=engine)
    log.info(f"Database ready at {_url.render_as_string(hide_password=True)}")
