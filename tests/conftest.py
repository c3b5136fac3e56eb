"""Pytest fixtures for quota engine tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from quota_engine.config import QuotaRules
from quota_engine.database import create_engine_for, create_schema, create_session_factory
from quota_engine.engine import QuotaEngine
from quota_engine.models import Employer, EmployerType

# Fixed "today" for every test; permits issued in early 2024 are still valid
TODAY = date(2024, 6, 1)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def rules() -> QuotaRules:
    """Default statutory rules."""
    return QuotaRules()


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Per-test SQLite file database with the full schema."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'quota.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(db_engine)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """A session for direct store assertions; rolled back afterwards."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def engine(session_factory: async_sessionmaker[AsyncSession], rules: QuotaRules) -> QuotaEngine:
    """Engine facade with a fixed clock."""
    return QuotaEngine(session_factory, rules, clock=lambda: TODAY, retry_base_delay=0.01)


@pytest_asyncio.fixture
async def employer(engine: QuotaEngine) -> Employer:
    """A corporate employer with no permits."""
    return await engine.create_employer("Acme Manufacturing", EmployerType.CORPORATE)


@pytest_asyncio.fixture
async def household(engine: QuotaEngine) -> Employer:
    """An individual (household) employer."""
    return await engine.create_employer("Chen Household", EmployerType.INDIVIDUAL)


@pytest.fixture
def assert_total_consistent(engine: QuotaEngine) -> Callable[[UUID], Awaitable[int]]:
    """Check that the cached employer total equals the ledger sum."""

    async def check(employer_id: UUID) -> int:
        cached = (await engine.get_employer(employer_id)).total_quota
        ledger = await engine.employer_total_quota(employer_id)
        assert cached == ledger
        return cached

    return check
