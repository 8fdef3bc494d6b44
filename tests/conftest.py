"""Global pytest configuration and fixtures.

Unit tests run the cache against fakeredis; integration tests under
tests/integration start a real Redis container.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis

from listings.cache.facade import CacheFacade, reset_cache_facade
from listings.cache.redis import RedisCache, close_redis
from listings.repository import InMemoryPropertyRepository
from listings.services.properties import PropertyService
from tests.factories import property_payload
from tests.fakes import UnreachableRedis


@pytest_asyncio.fixture(autouse=True)
async def reset_cache_state() -> AsyncIterator[None]:
    """Drop the process-wide Redis client and facade between tests."""
    yield
    await close_redis()
    reset_cache_facade()


@pytest_asyncio.fixture
async def fake_redis() -> AsyncIterator[FakeRedis]:
    """Isolated in-memory Redis for one test."""
    client = FakeRedis(server=FakeServer())
    yield client
    await client.aclose()


@pytest.fixture
def store(fake_redis: FakeRedis) -> RedisCache:
    """Cache store backed by fakeredis."""
    return RedisCache(client=fake_redis, operation_timeout=1.0)  # type: ignore[arg-type]


@pytest.fixture
def down_store() -> RedisCache:
    """Cache store whose backend refuses every connection."""
    return RedisCache(client=UnreachableRedis(), operation_timeout=0.2)  # type: ignore[arg-type]


@pytest.fixture
def facade(store: RedisCache) -> CacheFacade:
    """Enabled cache facade over the fakeredis store."""
    return CacheFacade(store=store, enabled=True)


@pytest.fixture
def down_facade(down_store: RedisCache) -> CacheFacade:
    """Enabled cache facade whose backend is unreachable."""
    return CacheFacade(store=down_store, enabled=True)


@pytest.fixture
def repository() -> InMemoryPropertyRepository:
    return InMemoryPropertyRepository()


@pytest.fixture
def service(repository: InMemoryPropertyRepository, facade: CacheFacade) -> PropertyService:
    return PropertyService(repository, facade)


@pytest.fixture
def make_payload():
    """Factory for valid create payloads."""
    return property_payload
