"""
Database engine, session factory, and metadata shared across the engine.
"""

from __future__ import annotations

import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from ..core.config import settings

logger = logging.getLogger(__name__)


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Engine options for the configured backend."""

    kwargs: dict[str, Any] = {"echo": settings.sql_echo, "future": True}
    if db_url.lower().startswith("sqlite"):
        # Sessions may be handed between threads by the caller
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update({"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10})
    return kwargs


def build_engine(db_url: str) -> Engine:
    """Create an engine; SQLite connections get foreign keys switched on."""
    new_engine = create_engine(db_url, **_build_engine_kwargs(db_url))

    if db_url.lower().startswith("sqlite"):

        @event.listens_for(new_engine, "connect")
        def _enable_sqlite_fks(dbapi_connection: Any, connection_record: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


engine: Engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_all(bind: Engine | None = None) -> None:
    """Create every table registered on ``Base``."""
    # Registers the mappers on Base.metadata
    from .. import models  # noqa: F401

    target = bind or engine
    Base.metadata.create_all(bind=target)
    logger.info("Database schema ensured on %s", target.url.render_as_string(hide_password=True))


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "create_all",
    "engine",
    "get_db",
]
