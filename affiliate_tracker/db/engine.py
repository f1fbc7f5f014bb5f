"""Async engine + session factory for the affiliate store.

SQLite (dev/test) or PostgreSQL via asyncpg (prod). SQLite only enforces the
link/click/conversion foreign keys when the pragma is switched on per
connection, so every SQLite engine built here turns it on.
"""
from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from config.settings import settings


def normalize_database_url(url: str) -> str:
    """Point bare postgres URLs at the asyncpg driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def enable_sqlite_foreign_keys(async_engine: AsyncEngine) -> None:
    @event.listens_for(async_engine.sync_engine, "connect")
    def _fk_pragma(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str) -> AsyncEngine:
    url = normalize_database_url(url)
    if url.startswith("sqlite"):
        built = create_async_engine(url, echo=False)
        enable_sqlite_foreign_keys(built)
        return built
    return create_async_engine(
        url,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,  # seconds
        pool_pre_ping=True,
    )


engine = build_engine(settings.DATABASE_URL)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncSession:
    """FastAPI dependency: one session per request, committed by the route."""
    async with async_session() as session:
        yield session
