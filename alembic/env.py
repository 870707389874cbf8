from __future__ import annotations

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from alembic import context

from quizdesk.config import settings
from quizdesk.db import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def database_url() -> str:
    """DB_URL from the environment wins over alembic.ini; plain sqlite gets the async driver."""

    url = settings.DB_URL or config.get_main_option("sqlalchemy.url") or ""
    if url.startswith("sqlite:"):
        url = "sqlite+aiosqlite:" + url[len("sqlite:"):]
    return url


def _configure(**options) -> None:
    # sqlite cannot ALTER most columns in place
    is_sqlite = database_url().startswith("sqlite")
    context.configure(target_metadata=target_metadata, compare_type=True, render_as_batch=is_sqlite, **options)


def run_offline() -> None:
    _configure(url=database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_online() -> None:
    engine = create_async_engine(database_url(), poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    asyncio.run(run_online())
