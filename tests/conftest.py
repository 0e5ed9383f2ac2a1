"""
Pytest configuration and fixtures
"""

import os

# The reconciliation scheduler must not start inside tests
os.environ.setdefault("SYNC_SCHEDULER_ENABLED", "false")

import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from models import Base, ModuleSource
from models.base import ModuleStatus

# In-memory SQLite shared across the single test connection
TEST_DATABASE_URL = "sqlite+aiosqlite://"


LOYALTY_CODE = '''import React, { useState } from "react";

interface LoyaltyProps {
  settings: { headline: string; points_per_dollar: number };
}

export default function LoyaltyPoints({ settings }: LoyaltyProps) {
  const [points, setPoints] = useState<number>(0);
  return (
    <div className="loyalty">
      <h3>{settings.headline}</h3>
      <button onClick={() => setPoints(points + settings.points_per_dollar)}>Earn</button>
      <span>{points}</span>
    </div>
  );
}
'''

LOYALTY_SCHEMA = {
    "headline": {"type": "text", "label": "Headline", "default": "Earn points", "max_length": 80},
    "points_per_dollar": {"type": "number", "min": 0, "max": 100, "default": 1},
    "accent": {"type": "color", "default": "#1a73e8"},
    "layout": {"type": "select", "options": ["card", "banner"], "default": "card"},
}

LOYALTY_DEFAULTS = {
    "headline": "Earn points",
    "points_per_dollar": 1,
    "accent": "#1a73e8",
    "layout": "card",
}

LOYALTY_STYLES = ".loyalty { padding: 12px; border-radius: 8px; }"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def loyalty_code():
    return LOYALTY_CODE


@pytest.fixture
def loyalty_schema():
    return dict(LOYALTY_SCHEMA)


@pytest.fixture
def loyalty_defaults():
    return dict(LOYALTY_DEFAULTS)


@pytest_asyncio.fixture
async def make_source(db_session):
    """Factory for committed ModuleSource rows; defaults to a deployable loyalty module."""

    async def _make(**overrides) -> ModuleSource:
        values = {
            "slug": f"module-{uuid.uuid4().hex[:8]}",
            "name": "Loyalty Points",
            "description": "Reward repeat customers with points",
            "category": "marketing",
            "icon": "Gift",
            "status": ModuleStatus.DRAFT,
            "render_code": LOYALTY_CODE,
            "settings_schema": dict(LOYALTY_SCHEMA),
            "styles": LOYALTY_STYLES,
            "default_settings": dict(LOYALTY_DEFAULTS),
        }
        values.update(overrides)
        source = ModuleSource(**values)
        db_session.add(source)
        await db_session.commit()
        return source

    return _make


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the database dependency overridden"""
    from api.main import app
    from api.dependencies import get_db

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()
