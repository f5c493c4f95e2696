"""
Pytest configuration and fixtures for the search service tests

Every test gets its own SQLite database file with the full-text index tables
created, so concurrent searches (one session per entity) see the same data.
"""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from sayings.database import Base, get_db, get_session_factory
from sayings.main import app
from sayings.services.fulltext import create_search_indexes
from sayings.services.trending_service import TrendingTopicsCache, get_trending_cache


@pytest.fixture(scope="function")
async def test_engine(tmp_path):
    """Fresh database file with tables and full-text indexes"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sayings_test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await create_search_indexes(conn)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function")
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session used to arrange test data"""
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
def trending_cache() -> TrendingTopicsCache:
    return TrendingTopicsCache(ttl_seconds=3600, fetch_size=50)


@pytest.fixture(scope="function")
async def client(session_factory, trending_cache) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client bound to the test database.

    Application errors are turned into responses instead of being re-raised,
    so 500 handling can be asserted.
    """

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_trending_cache] = lambda: trending_cache

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
