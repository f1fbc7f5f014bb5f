"""Alembic environment for the affiliate tables.

Migrations run on the same async driver the service uses (aiosqlite or
asyncpg), so DATABASE_URL needs no sync-driver rewrite.
"""
from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from affiliate_tracker.db.engine import engine as app_engine
from affiliate_tracker.db.tables import Base
import affiliate_tracker.db.affiliate_tables  # noqa: F401  (registers link/click/conversion tables)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    # engine.py already normalized postgresql:// to the asyncpg driver
    return app_engine.url.render_as_string(hide_password=False)


def _configure(**kwargs) -> None:
    # batch mode lets ALTERs work on SQLite in dev
    context.configure(
        target_metadata=target_metadata,
        render_as_batch=True,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of touching a database."""
    _configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    connectable = create_async_engine(_database_url(), poolclass=pool.NullPool)
    async with connectable.connect() as connection:
        await connection.run_sync(_run_sync)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
