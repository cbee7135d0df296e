"""Database engine and session management utilities."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from campus_events.config import get_config

__all__ = [
    "Base",
    "get_engine",
    "init_engine",
    "get_session",
]

Base = declarative_base()

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def init_engine(database_url: Optional[str] = None, **engine_kwargs) -> Engine:
    """(Re)create the engine and the session factory bound to it."""
    global _engine, _SessionLocal

    settings = get_config().database
    if database_url is None:
        database_url = settings.url

    if _engine is not None:
        _engine.dispose()

    kwargs = {"future": True, "pool_pre_ping": True}
    kwargs.update(engine_kwargs)

    if database_url.startswith("sqlite"):
        # The lifecycle sweep runs on a scheduler thread.
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_size", settings.pool_size)
        kwargs.setdefault("max_overflow", settings.max_overflow)

    _engine = create_engine(database_url, **kwargs)
    _SessionLocal = sessionmaker(
        bind=_engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        future=True,
        class_=Session,
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        return init_engine()
    return _engine


def get_session() -> Session:
    if _SessionLocal is None:
        init_engine()
    assert _SessionLocal is not None  # For mypy
    return _SessionLocal()
