from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.engine import make_url
from sqlmodel import SQLModel, Session, create_engine
import logging
import os

# Ensure models are imported so SQLModel metadata is populated
from ..models import profile as _profile_models  # noqa: F401
from ..models import report as _report_models  # noqa: F401
from .config import settings

log = logging.getLogger(__name__)


def _is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


_DATABASE_URL = (settings.DATABASE_URL or "").strip()

_POOL_KWARGS = {
    "pool_pre_ping": _is_truthy(os.getenv("DB_POOL_PRE_PING", "true")),
    "pool_size": int(os.getenv("DB_POOL_SIZE", 5)),
    "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", 5)),
    "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", 1800)),
    "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", 30)),
    # Force ROLLBACK on connections returned to the pool so no transaction leaks across requests
    "pool_reset_on_return": "rollback",
}


def _create_engine():
    """Create the engine for DATABASE_URL.

    SQLite (local dev / tests) gets a single-file engine without pool sizing;
    everything else gets the pooled configuration above.
    """
    try:
        backend_name = make_url(_DATABASE_URL).get_backend_name()
    except Exception as e:
        log.error("[db] Invalid DATABASE_URL format: %s", e)
        raise RuntimeError(f"Invalid DATABASE_URL format: {e}") from e

    if backend_name == "sqlite":
        log.info("[db] Using SQLite database (dev only)")
        return create_engine(_DATABASE_URL, echo=False, connect_args={"check_same_thread": False})

    log.info("[db] Using %s database (pool_size=%s, max_overflow=%s)",
             backend_name, _POOL_KWARGS["pool_size"], _POOL_KWARGS["max_overflow"])
    return create_engine(_DATABASE_URL, echo=False, **_POOL_KWARGS)


engine = _create_engine()


def create_db_and_tables():
    """Create all tables from SQLModel metadata."""
    SQLModel.metadata.create_all(engine)


def get_session():
    """Provide database session for FastAPI dependency injection.

    expire_on_commit=False keeps attributes readable after commits; rows are
    serialized after the service layer has committed.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        if session.in_transaction():
            session.rollback()
        session.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a context manager for DB sessions outside FastAPI dependencies.

    Caller is responsible for commit(); anything left open is rolled back.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        if session.in_transaction():
            session.rollback()
        session.close()
