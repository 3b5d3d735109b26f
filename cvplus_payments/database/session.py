"""
Engine and session lifecycle.

One pooled engine per process, created lazily from DATABASE_URL. Request
handlers receive a session through the get_db_session dependency; jobs
and scripts use session_scope().

Usage:
    from cvplus_payments.database.session import get_db_session

    @router.post("/getUserSubscription")
    def get_user_subscription(db: Session = Depends(get_db_session)):
        ...
"""

import logging
import os
from contextlib import contextmanager
from typing import Generator, Iterator, Optional

from fastapi import HTTPException, status
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

# Handlers are short-lived; a small pool is enough
POOL_OPTIONS = {"pool_size": 5, "max_overflow": 10, "pool_recycle": 1800}

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


class DatabaseNotConfiguredError(RuntimeError):
    """DATABASE_URL is not set."""
    pass


def database_url_from_env() -> str:
    """
    Read DATABASE_URL, rewriting the legacy postgres:// scheme.

    Raises:
        DatabaseNotConfiguredError: Variable missing or empty
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise DatabaseNotConfiguredError("DATABASE_URL environment variable is not set")
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        url = database_url_from_env()
        options = {"pool_pre_ping": True}
        if not url.startswith("sqlite"):
            options.update(POOL_OPTIONS)
        _engine = create_engine(url, **options)
        logger.info("Database engine created", extra={"dialect": _engine.dialect.name})
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autoflush=False)
    return _session_factory


def get_db_session() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding one session per request.

    Services own their commits and rollbacks; the session is closed once
    the response is produced. A missing DATABASE_URL is a 503.
    """
    try:
        factory = get_session_factory()
    except DatabaseNotConfiguredError as e:
        logger.error("Database unavailable for request", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured",
        )

    with factory() as session:
        yield session


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Session for jobs and scripts.

    Raises:
        DatabaseNotConfiguredError: DATABASE_URL is not set
    """
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()
