"""
Engine construction and connection helpers for the relational store.

Repositories never open connections on their own; they go through
``connect``/``transaction`` so that driver failures surface uniformly as
``DatabaseError`` with the original driver message.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from .config import DatabaseSettings, get_settings
from .entities.tables import metadata
from .errors import DatabaseError

logger = logging.getLogger(__name__)


def build_engine(settings: DatabaseSettings) -> Engine:
    """Create an engine for the configured URL."""
    if settings.is_sqlite:
        # In-memory SQLite must share one connection across threads
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in settings.url or settings.url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
        return create_engine(settings.url, echo=settings.echo, **kwargs)

    return create_engine(
        settings.url,
        echo=settings.echo,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_pre_ping=settings.pool_pre_ping,
    )


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    settings = get_settings()
    engine = build_engine(settings.db)
    logger.info("Database engine created", extra={"dialect": engine.dialect.name})
    return engine


def init_schema(engine: Engine) -> None:
    """Create any missing tables."""
    try:
        metadata.create_all(engine)
    except SQLAlchemyError as exc:
        raise DatabaseError(str(exc)) from exc
    logger.info("Database schema ensured", extra={"tables": len(metadata.tables)})


def ping(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as exc:
        logger.warning(f"Database ping failed: {exc}")
        return False


@contextmanager
def connect(engine: Engine) -> Iterator[Connection]:
    """Read-only connection; errors are re-raised as ``DatabaseError``."""
    try:
        with engine.connect() as conn:
            yield conn
    except SQLAlchemyError as exc:
        logger.error(f"Database query failed: {exc}")
        raise DatabaseError(str(exc)) from exc


@contextmanager
def transaction(engine: Engine) -> Iterator[Connection]:
    """Connection inside a transaction that commits on success."""
    try:
        with engine.begin() as conn:
            yield conn
    except SQLAlchemyError as exc:
        logger.error(f"Database write failed: {exc}")
        raise DatabaseError(str(exc)) from exc
