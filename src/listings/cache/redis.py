"""Redis cache store for the listings API.

Provides async get/set/delete/delete-by-pattern over redis-py's asyncio
client. The cache is an optimization: every backend call runs under a short
timeout, and connection failures, timeouts and encoding errors degrade to a
miss (reads) or a logged no-op (writes) reported as ``CacheWarning`` entries.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar, cast

import orjson
import redis.asyncio as redis
from pydantic import BaseModel
from redis.exceptions import RedisError

from listings.cache.errors import (
    BackendUnavailable,
    CacheErrorKind,
    CacheLookup,
    CacheOutcome,
    CacheWarning,
    SerializationFailure,
)
from listings.config import settings
from listings.observability.metrics import get_metrics

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

T = TypeVar("T")

ORJSON_OPTIONS = orjson.OPT_NON_STR_KEYS | orjson.OPT_UTC_Z

# Keys per DEL command inside a pattern-delete transaction
DELETE_BATCH = 500

_GLOB_CHARS = "*?["

# Process-wide connection state
_redis_client: Redis | None = None
_connect_task: asyncio.Task[Redis] | None = None
_last_failure: float | None = None


def _create_client() -> Redis:
    return redis.from_url(  # type: ignore[no-untyped-call]
        settings.redis_dsn,
        decode_responses=False,  # values are orjson bytes
        socket_timeout=settings.cache_operation_timeout,
        socket_connect_timeout=settings.cache_connect_timeout,
        health_check_interval=30,
    )


async def _connect() -> Redis:
    client = _create_client()
    try:
        await asyncio.wait_for(
            cast(Awaitable[bool], client.ping()), timeout=settings.cache_connect_timeout
        )
    except (RedisError, OSError, asyncio.TimeoutError) as e:
        await client.aclose()
        raise BackendUnavailable(f"Redis connection failed: {e}") from e
    logger.info("Connected to Redis")
    return client


async def get_redis() -> Redis:
    """Get or create the process-wide Redis client.

    Concurrent callers share a single in-flight connection attempt. After a
    failed attempt, callers get ``BackendUnavailable`` without a new attempt
    until ``cache_reconnect_backoff`` seconds have passed.

    Raises:
        BackendUnavailable: If Redis cannot be reached
    """
    global _redis_client, _connect_task, _last_failure

    if _redis_client is not None:
        return _redis_client

    if (
        _last_failure is not None
        and time.monotonic() - _last_failure < settings.cache_reconnect_backoff
    ):
        raise BackendUnavailable("Redis unavailable, waiting before reconnecting")

    if _connect_task is None:
        _connect_task = asyncio.create_task(_connect())
    task = _connect_task

    try:
        client = await asyncio.shield(task)
    except Exception:
        if _connect_task is task:
            _connect_task = None
            _last_failure = time.monotonic()
        raise

    if _redis_client is None:
        _redis_client = client
        _connect_task = None
        _last_failure = None
    return _redis_client


async def close_redis() -> None:
    """Close Redis connections and reset the connection state."""
    global _redis_client, _connect_task, _last_failure
    if _connect_task is not None:
        _connect_task.cancel()
        _connect_task = None
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
    _last_failure = None


def _encode_default(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True)
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def encode_value(value: Any) -> bytes:
    """Serialize a cache payload to JSON bytes.

    Raises:
        SerializationFailure: If the value is not JSON serializable
    """
    try:
        return orjson.dumps(value, default=_encode_default, option=ORJSON_OPTIONS)
    except (orjson.JSONEncodeError, TypeError) as e:
        raise SerializationFailure(str(e)) from e


def decode_value(raw: bytes | str) -> Any:
    """Deserialize a cache payload.

    Raises:
        SerializationFailure: If the stored bytes are not valid JSON
    """
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise SerializationFailure(str(e)) from e


def is_literal(pattern: str) -> bool:
    """Whether a glob pattern has no unescaped wildcard."""
    escaped = False
    for ch in pattern:
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch in _GLOB_CHARS:
            return False
    return True


def unescape(pattern: str) -> str:
    """Strip glob escapes from a literal pattern."""
    out: list[str] = []
    escaped = False
    for ch in pattern:
        if ch == "\\" and not escaped:
            escaped = True
            continue
        out.append(ch)
        escaped = False
    return "".join(out)


class RedisCache:
    """Key-value cache store with per-entry expiry.

    Uses the process-wide client from ``get_redis`` unless a client is
    injected. No method raises for backend or serialization problems.
    """

    def __init__(
        self,
        client: Redis | None = None,
        operation_timeout: float | None = None,
        scan_count: int | None = None,
    ):
        self._client = client
        self.operation_timeout = (
            operation_timeout if operation_timeout is not None else settings.cache_operation_timeout
        )
        # SCAN walks the keyspace in several round trips
        self.bulk_timeout = self.operation_timeout * 10
        self.scan_count = scan_count or settings.cache_scan_count
        self.metrics = get_metrics()

    async def _get_client(self) -> Redis:
        if self._client is not None:
            return self._client
        return await get_redis()

    async def _call(
        self,
        operation: str,
        call: Callable[[Redis], Awaitable[T]],
        timeout: float | None = None,
    ) -> T:
        """Run one backend call under a timeout.

        Raises:
            BackendUnavailable: On connection errors and timeouts
        """
        start = time.perf_counter()
        try:
            client = await self._get_client()
            return await asyncio.wait_for(call(client), timeout=timeout or self.operation_timeout)
        except BackendUnavailable:
            raise
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise BackendUnavailable(f"{type(e).__name__}: {e}") from e
        finally:
            self.metrics.cache_operation_duration_seconds.labels(operation=operation).observe(
                time.perf_counter() - start
            )

    def _degrade(
        self, kind: CacheErrorKind, operation: str, key: str, error: Exception
    ) -> CacheWarning:
        logger.warning(f"Cache {operation} degraded for {key}: {error}")
        self.metrics.cache_degraded_total.labels(operation=operation, kind=kind.value).inc()
        return CacheWarning(kind=kind, operation=operation, key=key, detail=str(error))

    # -------------------------------------------------------------------------
    # Single-key operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> CacheLookup:
        """Get a cached value. Expired, absent and unreadable entries are misses."""
        try:
            raw = await self._call("get", lambda c: c.get(key))
        except BackendUnavailable as e:
            return CacheLookup(
                warnings=[self._degrade(CacheErrorKind.BACKEND_UNAVAILABLE, "get", key, e)]
            )

        if raw is None:
            return CacheLookup()

        try:
            value = decode_value(raw)
        except SerializationFailure as e:
            return CacheLookup(
                warnings=[self._degrade(CacheErrorKind.SERIALIZATION, "get", key, e)]
            )
        return CacheLookup(hit=True, value=value)

    async def set(self, key: str, value: Any, ttl: int) -> CacheOutcome:
        """Store a value, replacing any existing entry and resetting its TTL."""
        if ttl <= 0:
            raise ValueError(f"TTL must be positive, got {ttl}")

        try:
            payload = encode_value(value)
        except SerializationFailure as e:
            return CacheOutcome(
                warnings=[self._degrade(CacheErrorKind.SERIALIZATION, "set", key, e)]
            )

        try:
            await self._call("set", lambda c: c.set(key, payload, ex=ttl))
        except BackendUnavailable as e:
            return CacheOutcome(
                warnings=[self._degrade(CacheErrorKind.BACKEND_UNAVAILABLE, "set", key, e)]
            )

        logger.debug(f"Cached {key} (TTL: {ttl}s)")
        return CacheOutcome(count=1)

    async def delete(self, key: str) -> CacheOutcome:
        """Delete a single key."""
        try:
            deleted = await self._call("delete", lambda c: c.delete(key))
        except BackendUnavailable as e:
            return CacheOutcome(
                warnings=[self._degrade(CacheErrorKind.BACKEND_UNAVAILABLE, "delete", key, e)]
            )
        return CacheOutcome(count=int(deleted))

    # -------------------------------------------------------------------------
    # Bulk operations
    # -------------------------------------------------------------------------

    async def delete_pattern(self, pattern: str) -> CacheOutcome:
        """Delete every key matching a glob pattern.

        Matching keys are collected with SCAN and removed in a single
        MULTI/EXEC transaction, so readers never observe a partial delete of
        the collected set. Keys written after the scan are not covered.
        """
        if is_literal(pattern):
            return await self.delete(unescape(pattern))

        try:
            keys = await self._call(
                "scan", lambda c: self._scan(c, pattern), timeout=self.bulk_timeout
            )
            if not keys:
                return CacheOutcome()
            deleted = await self._call(
                "delete_pattern",
                lambda c: self._delete_keys(c, keys),
                timeout=self.bulk_timeout,
            )
        except BackendUnavailable as e:
            return CacheOutcome(
                warnings=[
                    self._degrade(CacheErrorKind.BACKEND_UNAVAILABLE, "delete_pattern", pattern, e)
                ]
            )

        logger.info(f"Deleted {deleted} cache keys matching pattern: {pattern}")
        return CacheOutcome(count=deleted)

    async def flush_all(self) -> CacheOutcome:
        """Remove every key in the configured Redis database."""
        try:
            await self._call("flush", lambda c: c.flushdb(), timeout=self.bulk_timeout)
        except BackendUnavailable as e:
            return CacheOutcome(
                warnings=[self._degrade(CacheErrorKind.BACKEND_UNAVAILABLE, "flush", "*", e)]
            )
        logger.info("Flushed cache database")
        return CacheOutcome()

    async def _scan(self, client: Redis, pattern: str, limit: int | None = None) -> list[bytes]:
        # SCAN may return a key more than once
        found: dict[bytes, None] = {}
        async for key in client.scan_iter(match=pattern, count=self.scan_count):
            found[key] = None
            if limit is not None and len(found) >= limit:
                break
        return list(found)

    async def _delete_keys(self, client: Redis, keys: list[bytes]) -> int:
        async with client.pipeline(transaction=True) as pipe:
            for start in range(0, len(keys), DELETE_BATCH):
                pipe.delete(*keys[start : start + DELETE_BATCH])
            results = await pipe.execute()
        return sum(int(r) for r in results)

    # -------------------------------------------------------------------------
    # Inspection (admin surface; these raise BackendUnavailable)
    # -------------------------------------------------------------------------

    async def keys(self, pattern: str, limit: int = 100) -> list[str]:
        """List keys matching a pattern, up to ``limit``."""
        found = await self._call(
            "scan", lambda c: self._scan(c, pattern, limit), timeout=self.bulk_timeout
        )
        return [k.decode() if isinstance(k, bytes) else k for k in found]

    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds (-2 when the key does not exist)."""
        return int(await self._call("ttl", lambda c: c.ttl(key)))

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        try:
            await self._call("ping", lambda c: cast(Awaitable[bool], c.ping()))
            return True
        except BackendUnavailable:
            return False
