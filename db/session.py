"""
db/session.py

Lazily created SQLAlchemy engine and session factory for the forecast store.
"""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.config import get_database_settings
from db.config import resolve_database_url


def create_db_engine(url: str | None = None) -> Engine:
    """
    Build an engine for *url* (or the configured URL).

    Pool sizing only applies to server databases; SQLite uses its default
    single-connection pool.
    """
    database_url = url or resolve_database_url()
    settings = get_database_settings()
    if database_url.startswith("sqlite"):
        return create_engine(database_url, echo=settings.echo)

    return create_engine(
        database_url,
        echo=settings.echo,
        pool_pre_ping=True,
        pool_recycle=settings.pool_recycle,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )


_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def get_engine() -> Engine:
    """Return the shared engine, creating it on first call."""
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def get_session() -> Session:
    """Open a new session bound to the shared engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(),
            class_=Session,
            autoflush=False,
            expire_on_commit=False,
        )
    return _session_factory()
