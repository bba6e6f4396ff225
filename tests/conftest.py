"""Pytest configuration and fixtures for Costimator tests.

Provides a small in-memory catalog, in-memory SQLite sessions and a seeded
project.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from costimator.catalog.service import CatalogService
from costimator.config import reset_config
from costimator.db.models import Base
from costimator.db.projects import create_project
from costimator.models import CatalogItem, Project, ScheduleItem, ScheduleItemCategory, Trade


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    reset_config()
    yield
    reset_config()


@pytest.fixture
def catalog_items() -> list[CatalogItem]:
    return [
        CatalogItem(item_number="C-1", description="Excavation", unit="m", category="Earthworks"),
        CatalogItem(
            item_number="800 (1)",
            description="Clearing and Grubbing",
            unit="Square Meter",
            category="Earthworks - Clearing",
            trade=Trade.EARTHWORK,
        ),
        CatalogItem(
            item_number="803 (1) a",
            description="Structure Excavation (Common Soil)",
            unit="Cubic Meter",
            category="Structure Excavation",
            trade=Trade.EARTHWORK,
        ),
        CatalogItem(
            item_number="900 (1) a",
            description="Structural Concrete, Class A, 28 days",
            unit="Cubic Meter",
            category="Concrete Works",
            trade=Trade.CONCRETE,
        ),
        CatalogItem(
            item_number="1001 (8)",
            description="Sanitary/Plumbing Fixtures",
            unit="Lump Sum",
            category="Plumbing Works",
            trade=Trade.PLUMBING,
        ),
        CatalogItem(
            item_number="1001 (1)",
            description="Storm Drainage and Downspout (PVC Pipe 100mm)",
            unit="Linear Meter",
            category="Drainage",
            trade=Trade.PLUMBING,
        ),
        CatalogItem(
            item_number="1006 (1)",
            description="Wooden Doors (Flush Type)",
            unit="Square Meter",
            category="Doors",
            trade=Trade.DOORS_WINDOWS,
        ),
    ]


@pytest.fixture
def catalog(catalog_items: list[CatalogItem]) -> CatalogService:
    """Small catalog covering Parts C, D, E plus an unclassifiable item."""
    return CatalogService(catalog_items, version="test")


@pytest.fixture
def plumbing_item() -> ScheduleItem:
    return ScheduleItem(
        id="s1",
        category=ScheduleItemCategory.PLUMBING,
        dpwh_item_number_raw="C-1",
        unit="m",
        qty=Decimal("12"),
        basis_note="per plumbing layout",
        tags=["phase1"],
    )


@pytest.fixture
def clearing_item() -> ScheduleItem:
    return ScheduleItem(
        id="s2",
        category=ScheduleItemCategory.EARTHWORKS_CLEARING,
        dpwh_item_number_raw="800 (1)",
        unit="Square Meter",
        qty=Decimal("250.5"),
        basis_note="site survey",
    )


@pytest_asyncio.fixture()
async def db_session() -> AsyncSession:
    """Create in-memory database for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest_asyncio.fixture()
async def project(db_session: AsyncSession) -> Project:
    """Empty project persisted in the test database."""
    return await create_project(db_session, "Two-Storey School Building", location="Tacloban City")
