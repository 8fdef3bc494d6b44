"""Integration test fixtures using Docker.

Provides a containerized Redis for realistic cache testing.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.asyncio import Redis

from listings.cache.facade import CacheFacade
from listings.cache.redis import RedisCache
from listings.repository import InMemoryPropertyRepository
from tests.integration.docker_utils import (
    RedisContainer,
    get_docker_client,
    start_redis,
    wait_for_redis,
)


def pytest_collection_modifyitems(items):
    """Mark everything under tests/integration."""
    for item in items:
        if "integration" in item.path.parts:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def docker_client():
    """Create a Docker client or skip if Docker is unavailable."""
    try:
        client = get_docker_client()
        client.ping()
    except Exception as exc:
        pytest.skip(f"Docker not available: {exc}")
    yield client
    client.close()


@pytest.fixture(scope="session")
def redis_container(docker_client) -> Iterator[RedisContainer]:
    """Start Redis container for the test session."""
    with start_redis(docker_client) as redis:
        yield redis


@pytest.fixture(scope="session")
def redis_url(redis_container: RedisContainer) -> str:
    """Redis URL for the test container."""
    return redis_container.url()


@pytest_asyncio.fixture
async def redis_client(redis_url: str) -> AsyncIterator[Redis]:
    """Redis client for one test; the database is flushed afterwards."""
    client = Redis.from_url(redis_url, decode_responses=False)
    await wait_for_redis(client)
    yield client
    await client.flushdb()
    await client.aclose()


@pytest.fixture
def redis_store(redis_client: Redis) -> RedisCache:
    return RedisCache(client=redis_client, operation_timeout=2.0)


@pytest.fixture
def redis_facade(redis_store: RedisCache) -> CacheFacade:
    return CacheFacade(store=redis_store, enabled=True)


@pytest_asyncio.fixture
async def test_client(redis_facade: CacheFacade) -> AsyncIterator[AsyncClient]:
    """API client backed by the real Redis."""
    from listings.api.app import create_app

    app = create_app(repository=InMemoryPropertyRepository(), cache_facade=redis_facade)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
