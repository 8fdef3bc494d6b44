"""Disposable Redis containers for the integration suite."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

if TYPE_CHECKING:
    from docker.client import DockerClient
    from docker.models.containers import Container
    from redis.asyncio import Redis

REDIS_IMAGE = "redis:7-alpine"


def get_docker_client() -> DockerClient:
    import docker

    return docker.from_env()


def published_host(client: DockerClient) -> str:
    """Where published ports are reachable: localhost unless DOCKER_HOST is remote."""
    base_url = client.api.base_url
    if base_url.startswith(("unix://", "npipe://", "http+docker://")):
        return "localhost"
    return urlparse(base_url).hostname or "localhost"


class RedisContainer:
    """A running Redis container with a random published port."""

    def __init__(self, container: Container, host: str) -> None:
        self.container = container
        self.host = host

    @property
    def port(self) -> int:
        self.container.reload()
        bindings = self.container.attrs["NetworkSettings"]["Ports"].get("6379/tcp")
        if not bindings:
            raise RuntimeError(f"Redis port not published on {self.container.short_id}")
        return int(bindings[0]["HostPort"])

    def url(self, db: int = 0) -> str:
        return f"redis://{self.host}:{self.port}/{db}"

    @contextmanager
    def frozen(self) -> Iterator[None]:
        """Pause the container: connections stay open but nothing answers."""
        self.container.pause()
        try:
            yield
        finally:
            self.container.unpause()


@contextmanager
def start_redis(client: DockerClient) -> Iterator[RedisContainer]:
    container = client.containers.run(REDIS_IMAGE, detach=True, ports={"6379/tcp": None})
    try:
        yield RedisContainer(container, published_host(client))
    finally:
        container.remove(force=True, v=True)


async def wait_for_redis(client: Redis, timeout: float = 30.0) -> None:
    """Poll PING until the server accepts connections."""
    deadline = time.monotonic() + timeout
    while True:
        try:
            await client.ping()
            return
        except (RedisConnectionError, RedisTimeoutError):
            if time.monotonic() >= deadline:
                raise
            await asyncio.sleep(0.5)
