"""Shared test fixtures — single test DB for all test modules."""
from __future__ import annotations

from contextlib import asynccontextmanager
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from config.settings import settings
from affiliate_tracker.db.tables import Base, ProgramRow
from affiliate_tracker.db.engine import enable_sqlite_foreign_keys, get_session
from affiliate_tracker.auth import create_token

# Use a shared in-memory DB with check_same_thread=False and StaticPool
# This ensures all connections see the same in-memory database.
from sqlalchemy.pool import StaticPool

TEST_DB_URL = "sqlite+aiosqlite:///file:test?mode=memory&cache=shared&uri=true"
ADMIN_KEY = "test-admin-key"

test_engine = create_async_engine(
    TEST_DB_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(test_engine)
TestSession = async_sessionmaker(test_engine, expire_on_commit=False, class_=AsyncSession)


async def override_get_session():
    async with TestSession() as session:
        yield session


# Import app and override BEFORE any test module imports app
from affiliate_tracker.api.main import app  # noqa: E402

app.dependency_overrides[get_session] = override_get_session

# Anything that opens its own session goes through the test engine too
import affiliate_tracker.db.engine as _engine_mod  # noqa: E402
_engine_mod.async_session = TestSession
_engine_mod.engine = test_engine


@asynccontextmanager
async def get_test_session():
    """Context manager for seeding data in tests."""
    async with TestSession() as session:
        yield session


async def make_program(**overrides) -> ProgramRow:
    """Insert a program (10% commission, 30-day window unless overridden)."""
    fields = dict(
        name="Protein Shop",
        commission_type="percentage",
        commission_rate=Decimal("10.00"),
        target_url="https://shop.example.com/protein",
        is_active=True,
        attribution_window_days=30,
    )
    fields.update(overrides)
    async with TestSession() as session:
        program = ProgramRow(**fields)
        session.add(program)
        await session.commit()
        return program


async def make_link(program_id: int, affiliate_id: str = "aff-1", code: str = "CODE123456", is_active: bool = True):
    from affiliate_tracker.db.affiliate_tables import LinkRow

    async with TestSession() as session:
        link = LinkRow(
            program_id=program_id,
            affiliate_id=affiliate_id,
            code=code,
            url=f"https://go.example.com/aff/{code}",
            is_active=is_active,
        )
        session.add(link)
        await session.commit()
        return link


def auth_headers(actor_id: str) -> dict:
    return {"Authorization": f"Bearer {create_token(actor_id)}"}


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create tables before each test, drop after."""
    import affiliate_tracker.db.affiliate_tables  # noqa: F401

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def session():
    async with TestSession() as s:
        yield s


@pytest.fixture
def admin_headers(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", ADMIN_KEY)
    return {"X-Admin-Key": ADMIN_KEY}
