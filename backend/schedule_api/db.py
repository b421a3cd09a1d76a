# backend/schedule_api/db.py
"""Database engine, session factory and base model setup."""

from __future__ import annotations

import logging
from typing import Generator, Optional
from os import getenv
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

log = logging.getLogger(__name__)


def _normalize_db_url(url: str) -> str:
    """Normalize common Postgres URLs to the psycopg2 driver form."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg2://", 1)
    return url


def get_database_url() -> str:
    raw_url = getenv("DATABASE_URL")
    if raw_url:
        return _normalize_db_url(raw_url)
    return f"sqlite:///{(Path(__file__).resolve().parents[1] / 'schedule.db')}"


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


# Process-wide handles, created on first use.
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> Engine:
    """Return the process-wide engine, creating it on first call."""
    global _engine
    if _engine is None:
        url = get_database_url()
        is_sqlite = url.startswith("sqlite")
        _engine = create_engine(
            url,
            echo=getenv("SQL_ECHO") == "1",
            pool_pre_ping=True,
            connect_args=({} if not is_sqlite else {"check_same_thread": False}),
        )
        log.info("Created database engine for %s", _engine.url.render_as_string(hide_password=True))
    return _engine


def get_sessionmaker() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(), autoflush=False, autocommit=False, expire_on_commit=False
        )
    return _session_factory


def dispose_engine() -> None:
    """Close pooled connections and forget the process-wide handles."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a session per request
    and guarantees it is closed afterwards.
    """
    db = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()
