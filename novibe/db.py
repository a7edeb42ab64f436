from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from novibe.config import get_settings
from novibe.models import Base

_lock = threading.Lock()
_engine: Engine | None = None
_SessionLocal = None


def _sqlite_path(url: str) -> Path | None:
    if not url.startswith("sqlite:///") or url.endswith(":memory:"):
        return None
    return Path(url.removeprefix("sqlite:///"))


def init_db(database_url: str | None = None) -> Engine:
    """Create the engine and session factory, creating tables if needed."""
    global _engine, _SessionLocal
    if database_url is None:
        database_url = get_settings().database_url
    with _lock:
        if _engine is not None:
            _engine.dispose()
        connect_args: dict = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            path = _sqlite_path(database_url)
            if path is not None:
                path.parent.mkdir(parents=True, exist_ok=True)
        _engine = create_engine(database_url, connect_args=connect_args)
        Base.metadata.create_all(_engine)
        _SessionLocal = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
        return _engine


def get_session() -> Session:
    with _lock:
        if _SessionLocal is None:
            raise RuntimeError("No database: call init_db() first")
        factory = _SessionLocal
    return factory()


def session_generator() -> Generator[Session, None, None]:
    """One session per unit of work, rolled back if the caller raises.

    FastAPI dependencies ``yield from`` it; the CLI and MCP tools use the
    ``session_scope`` context-manager form.
    """
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


session_scope = contextmanager(session_generator)
