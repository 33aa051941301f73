"""Service test fixtures - async DB, subscription store, and FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - The store runs on a DatabaseSessionManager bound to the test engine
    - get_store dependency overridden so routes hit the test store

Design Decisions:
    - SQLite in-memory: fast, no external dependency; both backends support the
      ON CONFLICT DO NOTHING and RETURNING the store relies on
    - DatabaseSessionManager built via __new__: its constructor sets pool options
      that SQLite's static pool rejects
"""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

import online_subs.models  # noqa: F401
from online_subs.api.routes.subscriptions import get_store
from online_subs.core.domain_types import UserId
from online_subs.core.subscription import Subscription
from online_subs.db.base import Base
from online_subs.infrastructure.database import DatabaseSessionManager
from online_subs.infrastructure.subscription_store import SubscriptionStore
from online_subs.main import app


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
def db_manager(test_engine, test_session_factory):
    manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    manager.engine = test_engine
    manager._session_factory = test_session_factory
    return manager


@pytest.fixture
def store(db_manager):
    return SubscriptionStore(db_manager)


@pytest.fixture
async def client(store):
    """FastAPI test client with the store dependency overridden."""
    app.dependency_overrides[get_store] = lambda: store

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def make_subscription():
    """Factory for Subscription values with sensible defaults."""
    user = UserId(uuid4())

    def _make(
        service: str = "Yandex Plus",
        cost: int = 400,
        user_id: UserId | None = None,
        start_date: date = date(2024, 1, 1),
        end_date: date | None = None,
    ) -> Subscription:
        return Subscription(
            service=service,
            cost=cost,
            user_id=user_id or user,
            start_date=start_date,
            end_date=end_date,
        )

    return _make
