"""Liveness and readiness probes.

Redis is optional for serving: when it is unreachable every read falls
through to the data source, so readiness reports ``degraded`` with a 200
instead of failing the probe.
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum

from fastapi import APIRouter, Request
from pydantic import BaseModel

from listings.cache.facade import CacheFacade

router = APIRouter(tags=["health"])

PROBE_TIMEOUT = 5.0


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"


class CacheHealth(BaseModel):
    status: HealthStatus
    enabled: bool
    latency_ms: float
    message: str | None = None


class HealthReport(BaseModel):
    status: HealthStatus
    checks: dict[str, CacheHealth]


async def probe_cache(cache: CacheFacade) -> CacheHealth:
    """Ping the cache backend, bounded by ``PROBE_TIMEOUT``."""
    if not cache.enabled:
        return CacheHealth(status=HealthStatus.HEALTHY, enabled=False, latency_ms=0.0)

    started = time.monotonic()
    try:
        reachable = await asyncio.wait_for(cache.store.health_check(), timeout=PROBE_TIMEOUT)
    except asyncio.TimeoutError:
        reachable = False
    elapsed = round((time.monotonic() - started) * 1000, 2)

    if reachable:
        return CacheHealth(status=HealthStatus.HEALTHY, enabled=True, latency_ms=elapsed)
    return CacheHealth(
        status=HealthStatus.DEGRADED,
        enabled=True,
        latency_ms=elapsed,
        message="Redis unreachable, serving from the data source",
    )


@router.get("/health", response_model=HealthReport, response_model_exclude_none=True)
@router.get("/health/ready", response_model=HealthReport, response_model_exclude_none=True)
async def ready(request: Request) -> HealthReport:
    cache = await probe_cache(request.app.state.cache)
    return HealthReport(status=cache.status, checks={"cache": cache})


@router.get("/health/live")
async def live() -> dict[str, str]:
    return {"status": "ok"}
