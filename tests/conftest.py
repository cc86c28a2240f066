"""Shared fixtures: a throwaway SQLite database per test."""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_DSN", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cleanbook.database import init_db
from cleanbook.services.lifecycle_service import LifecycleEngine
from cleanbook.services.notification_hub import NotificationHub
from helpers import Seed, make_engine


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = make_engine(tmp_path / "test.db")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
def seed(session_factory) -> Seed:
    return Seed(session_factory)


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub(queue_size=8)


@pytest.fixture
def lifecycle(session_factory, hub) -> LifecycleEngine:
    return LifecycleEngine(session_factory, hub)


@pytest.fixture
def sync_database(tmp_path):
    """A database prepared outside any running loop, for Starlette's TestClient."""
    engine = make_engine(tmp_path / "sync.db")
    asyncio.run(init_db(engine))
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    yield factory
    asyncio.run(engine.dispose())
