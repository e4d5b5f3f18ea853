"""SQLAlchemy engine factory and pre-configured session.

This module provides:

* ``create_timespine_engine``   -- Create a SA engine from a URL.
* ``TimespineSession``          -- Session with ``expire_on_commit=False``.
* ``timespine_session_factory`` -- ``sessionmaker`` producing it.

Tags:
    orm, sqlalchemy, session, engine, timespine
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def create_timespine_engine(
    url: str = "sqlite:///timespine.db",
    *,
    echo: bool = False,
    pool_size: int | None = None,
    max_overflow: int | None = None,
    pool_timeout: int | None = None,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    Parameters
    ----------
    url:
        Database URL (``sqlite:///…``, ``postgresql://…``, etc.)
    echo:
        If ``True``, log all SQL to stdout.
    pool_size, max_overflow, pool_timeout:
        Connection pool parameters (ignored for SQLite).
    **kwargs:
        Extra arguments forwarded to ``sqlalchemy.create_engine``.
    """

    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        # In-memory databases vanish with their connection; share one.
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs.setdefault("poolclass", StaticPool)

        engine = _sa_create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    pool_kwargs: dict[str, Any] = {}
    if pool_size is not None:
        pool_kwargs["pool_size"] = pool_size
    if max_overflow is not None:
        pool_kwargs["max_overflow"] = max_overflow
    if pool_timeout is not None:
        pool_kwargs["pool_timeout"] = pool_timeout

    return _sa_create_engine(url, echo=echo, **pool_kwargs, **kwargs)


class TimespineSession(Session):
    """Pre-configured session with ``expire_on_commit=False``.

    Records are converted to frozen dataclasses before commit, but keeping
    rows loaded avoids lazy-load surprises in callers that inspect them.
    """

    def __init__(self, bind: Engine | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("expire_on_commit", False)
        super().__init__(bind=bind, **kwargs)


def timespine_session_factory(engine: Engine) -> sessionmaker[TimespineSession]:
    """Return a ``sessionmaker`` bound to *engine* that produces ``TimespineSession`` instances."""
    return sessionmaker(bind=engine, class_=TimespineSession)


__all__ = ["TimespineSession", "create_timespine_engine", "timespine_session_factory"]
