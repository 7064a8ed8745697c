"""Pytest configuration and fixtures for ConstructOS estimating tests.

Provides environment, in-memory database and sample record fixtures.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from constructos.config import reset_config
from constructos.db.models import Base
from constructos.models import PricingSettings

from tests.factories import TEST_TENANT


@pytest.fixture(autouse=True)
def app_env(monkeypatch):
    """Required configuration for every test; config cache cleared around it."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("TENANT_ID", TEST_TENANT)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def tenant_id() -> str:
    return TEST_TENANT


@pytest.fixture
def example_settings() -> PricingSettings:
    """Settings from the worked pricing example (percentages in percent)."""
    return PricingSettings(
        vat_rate=Decimal("20"),
        labour_burden_pct=Decimal("10"),
        overhead_pct=Decimal("5"),
        margin_pct=Decimal("15"),
        rounding_mode="nearest_1",
        pricing_mode="cost_plus",
    )


@pytest_asyncio.fixture()
async def db_session() -> AsyncSession:
    """Create in-memory database for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()
