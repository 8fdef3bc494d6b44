"""Cache administration endpoints.

Provides:
- Key browsing with remaining TTLs
- Pattern-based cache invalidation
- Purging every property cache entry
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Query
from pydantic import BaseModel

from listings.api.deps import CacheDep
from listings.api.errors import BadRequestError, CacheUnavailableError
from listings.cache.errors import BackendUnavailable
from listings.cache.facade import InvalidationReport
from listings.cache.keys import CacheKeys

router = APIRouter(prefix="/api/cache", tags=["cache"])

_MAX_PATTERN_LENGTH = 256


def _validate_pattern(pattern: str) -> str:
    """Validate and normalize cache key patterns.

    Only the property key families are allowed, so unrelated keys sharing
    the Redis database are never touched.
    """
    cleaned = pattern.strip()
    if not cleaned:
        raise BadRequestError("Pattern must not be empty")
    if len(cleaned) > _MAX_PATTERN_LENGTH:
        raise BadRequestError("Pattern is too long")
    if not CacheKeys.is_managed(cleaned):
        raise BadRequestError(
            f"Pattern must start with one of: {', '.join(CacheKeys.ALL_PATTERNS)}"
        )
    return cleaned


class CacheKey(BaseModel):
    """Information about a cached key."""

    key: str
    ttl: int  # -1 = no expiry, -2 = key doesn't exist


class InvalidationResult(BaseModel):
    """Result of a cache invalidation operation."""

    patterns: list[str]
    deleted_count: int
    warnings: list[str]
    timestamp: datetime


def _invalidation_result(report: InvalidationReport) -> InvalidationResult:
    return InvalidationResult(
        patterns=report.patterns,
        deleted_count=report.count,
        warnings=[w.detail for w in report.warnings],
        timestamp=datetime.now(UTC),
    )


@router.get("/keys", response_model=list[CacheKey])
async def list_cache_keys(
    cache: CacheDep,
    pattern: str = Query(default="properties:*", description="Key pattern to match"),
    limit: int = Query(default=100, ge=1, le=1000, description="Maximum keys to return"),
) -> list[CacheKey]:
    """List cache keys matching a pattern.

    Uses SCAN to avoid blocking on large keyspaces.
    """
    pattern = _validate_pattern(pattern)
    try:
        keys = await cache.store.keys(pattern, limit=limit)
        return [CacheKey(key=key, ttl=await cache.store.ttl(key)) for key in keys]
    except BackendUnavailable as e:
        raise CacheUnavailableError(str(e))


@router.delete("/invalidate", response_model=InvalidationResult)
async def invalidate_cache(
    cache: CacheDep,
    pattern: str = Query(..., description="Key pattern to invalidate (e.g. 'properties:search:*')"),
) -> InvalidationResult:
    """Invalidate cache keys matching a pattern."""
    pattern = _validate_pattern(pattern)
    outcome = await cache.store.delete_pattern(pattern)
    if outcome.warnings:
        raise CacheUnavailableError(outcome.warnings[0].detail)
    return _invalidation_result(InvalidationReport(patterns=[pattern], count=outcome.count))


@router.delete("/flush", response_model=InvalidationResult)
async def flush_property_caches(cache: CacheDep) -> InvalidationResult:
    """Purge every property cache entry.

    WARNING: This will clear all cached listings.
    """
    return _invalidation_result(await cache.invalidate_property_caches())
