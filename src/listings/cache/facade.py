"""Read-through / write-through entry point for cached property data.

Reads derive a key, try the store, and on a miss run the caller's loader and
populate the store with the category TTL. Writes run the caller's mutation
first and only after it succeeds purge the patterns chosen by the
invalidation policy.

Loader and mutation errors propagate unchanged and nothing is cached for
them. Cache problems never fail a call; they come back as warnings.
Concurrent misses on the same key may each run the loader (last write wins).

Example:
    facade = get_cache_facade()
    result = await facade.read_through(
        CacheCategory.SEARCH_RESULTS, filters, lambda: repository.search(filters)
    )
    page = result.value
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from listings.cache.errors import CacheErrorKind, CacheWarning, ReadResult, WriteResult
from listings.cache.invalidation import InvalidationPolicy, WriteOperation
from listings.cache.keys import CacheCategory, CacheKeys, derive_key, ttl_for
from listings.cache.redis import RedisCache
from listings.config import settings
from listings.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class MutationOutcome(Generic[T]):
    """Mutation result annotated with the record it touched."""

    value: T
    property_id: str | None = None
    owner_id: str | None = None


@dataclass
class InvalidationReport:
    """Patterns purged after a write and the keys they removed."""

    patterns: list[str] = field(default_factory=list)
    count: int = 0
    warnings: list[CacheWarning] = field(default_factory=list)


class CacheFacade:
    """Single entry point for cached reads and invalidating writes."""

    def __init__(
        self,
        store: RedisCache | None = None,
        policy: InvalidationPolicy | None = None,
        enabled: bool | None = None,
    ):
        self.store = store or RedisCache()
        self.policy = policy or InvalidationPolicy()
        self.enabled = settings.cache_enabled if enabled is None else enabled
        self.metrics = get_metrics()

    async def read_through(
        self,
        category: CacheCategory,
        params: Any,
        loader: Callable[[], Awaitable[T]],
    ) -> ReadResult[T]:
        """Serve from cache, or load and populate on a miss.

        ``None`` results are returned but not cached.
        """
        key = derive_key(category, params)
        if not self.enabled:
            return ReadResult(value=await loader(), cached=False, key=key)

        lookup = await self.store.get(key)
        if lookup.hit:
            self.metrics.cache_hits_total.labels(category=category.value).inc()
            logger.debug(f"Cache hit: {key}")
            return ReadResult(value=lookup.value, cached=True, key=key, warnings=lookup.warnings)

        self.metrics.cache_misses_total.labels(category=category.value).inc()
        logger.debug(f"Cache miss: {key}")

        value = await loader()
        warnings = list(lookup.warnings)
        if value is not None:
            outcome = await self.store.set(key, value, ttl_for(category))
            warnings.extend(outcome.warnings)

        return ReadResult(value=value, cached=False, key=key, warnings=warnings)

    async def write_through(
        self,
        operation: WriteOperation,
        mutation: Callable[[], Awaitable[T | MutationOutcome[T]]],
    ) -> WriteResult[T]:
        """Run a mutation, then invalidate what it made stale.

        If the mutation raises, the error propagates and the cache is left
        untouched. Invalidation failures are logged and returned as warnings
        on an otherwise successful result.
        """
        result = await mutation()

        if isinstance(result, MutationOutcome):
            operation = operation.annotate(result.property_id, result.owner_id)
            value = result.value
        else:
            value = result

        report = await self.invalidate(operation)
        return WriteResult(
            value=value,
            patterns=report.patterns,
            invalidated=report.count,
            warnings=report.warnings,
        )

    async def invalidate(self, operation: WriteOperation) -> InvalidationReport:
        """Purge every pattern the policy selects for ``operation``."""
        patterns = self.policy.keys_to_invalidate(operation)
        if not self.enabled:
            return InvalidationReport(patterns=patterns)
        return await self._purge(patterns, f"invalidate:{operation.kind.value}")

    async def invalidate_property_caches(self) -> InvalidationReport:
        """Purge every property-related cache entry."""
        return await self._purge(list(CacheKeys.ALL_PATTERNS), "invalidate:all")

    async def _purge(self, patterns: list[str], operation: str) -> InvalidationReport:
        report = InvalidationReport(patterns=patterns)
        outcomes = await asyncio.gather(
            *(self.store.delete_pattern(p) for p in patterns), return_exceptions=True
        )

        for pattern, outcome in zip(patterns, outcomes):
            if isinstance(outcome, BaseException):
                detail = f"{type(outcome).__name__}: {outcome}"
            elif outcome.warnings:
                detail = "; ".join(w.detail for w in outcome.warnings)
            else:
                report.count += outcome.count
                continue

            logger.error(f"Cache invalidation failed for {pattern}: {detail}")
            report.warnings.append(
                CacheWarning(
                    kind=CacheErrorKind.INVALIDATION,
                    operation=operation,
                    key=pattern,
                    detail=detail,
                )
            )

        self.metrics.cache_invalidated_keys_total.inc(report.count)
        return report


# Singleton instance for application use
_facade: CacheFacade | None = None


def get_cache_facade() -> CacheFacade:
    """Get or create the process-wide cache facade."""
    global _facade
    if _facade is None:
        _facade = CacheFacade()
    return _facade


def reset_cache_facade() -> None:
    """Drop the process-wide facade (used on shutdown and in tests)."""
    global _facade
    _facade = None
