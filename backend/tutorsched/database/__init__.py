"""
Engine, session factory and declarative base for the session store.

SQLite (local runs and tests) gets a thread-shareable connection; any other
dialect gets a bounded, pre-pinged pool sized from settings.
"""

from __future__ import annotations

import logging
from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from tutorsched.core.config import settings

logger = logging.getLogger(__name__)


def _build_engine_kwargs() -> dict[str, Any]:
    options: dict[str, Any] = {"future": True, "echo": settings.db_echo}
    if settings.is_sqlite:
        options["connect_args"] = {"check_same_thread": False}
        return options
    options.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        # Fail fast when the pool is exhausted instead of queueing requests
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=True,
        pool_recycle=300,
    )
    return options


engine: Engine = create_engine(settings.database_url, **_build_engine_kwargs())
logger.debug(f"Session store engine created for dialect {engine.dialect.name}")

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session: committed when the request succeeds, rolled back otherwise."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "get_db",
]
