from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from quizdesk.config import settings
from quizdesk.db.models import Base

log = logging.getLogger("db")


def _sqlite_file(db_url: str) -> Path | None:
    if not db_url.startswith("sqlite"):
        return None
    _, _, raw = db_url.partition("///")
    if not raw or raw.startswith(":memory:"):
        return None
    return Path(raw)


def build_session_factory(db_url: str, **engine_options) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Engine plus session factory for ``db_url``; a sqlite file's folder is created up front."""

    path = _sqlite_file(db_url)
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_async_engine(db_url, pool_pre_ping=True, **engine_options)
    return engine, async_sessionmaker(engine, expire_on_commit=False)


def scope_for(factory: async_sessionmaker[AsyncSession]):
    """Wrap ``factory`` into a ``session_scope``-style context manager."""

    @asynccontextmanager
    async def _scope() -> AsyncIterator[AsyncSession]:
        async with factory() as session:
            yield session

    return _scope


async_engine, async_session_factory = build_session_factory(settings.DB_URL)
session_scope = scope_for(async_session_factory)


async def init_db(engine: AsyncEngine | None = None) -> bool:
    """Create missing tables. Failures are logged and reported as ``False``."""

    engine = engine or async_engine
    try:
        async with engine.begin() as connection:
            await connection.execute(text("SELECT 1"))
            await connection.run_sync(Base.metadata.create_all)
    except Exception:
        log.exception("DB: schema setup failed")
        return False

    log.info("DB: schema ready url=%s", engine.url.render_as_string(hide_password=True))
    return True


__all__ = [
    "async_engine",
    "async_session_factory",
    "build_session_factory",
    "init_db",
    "scope_for",
    "session_scope",
]
