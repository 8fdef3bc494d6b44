"""Prometheus metrics for the listings API.

Cache metrics are labelled by key category (``search_results``,
``property_detail`` ...) so hit ratios can be read per family:

    sum(rate(listings_cache_hits_total[5m])) by (category)
      / (sum(rate(listings_cache_hits_total[5m])) by (category)
         + sum(rate(listings_cache_misses_total[5m])) by (category))

When ``ENABLE_METRICS`` is off every metric is a no-op stand-in, so callers
never check whether metrics are on.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from listings.config import settings

logger = logging.getLogger(__name__)


class NoOpMetric:
    """Accepts the Counter/Histogram calls and drops them."""

    def labels(self, **kwargs: Any) -> NoOpMetric:
        return self

    def inc(self, amount: float = 1) -> None:
        pass

    def observe(self, value: float) -> None:
        pass


_NOOP = NoOpMetric()

_LATENCY_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)
_CACHE_BUCKETS = (0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.5)

# attribute -> (type, name, help, labels, buckets)
_DEFINITIONS: dict[str, tuple[type, str, str, tuple[str, ...], tuple[float, ...] | None]] = {
    "http_requests_total": (
        Counter, "listings_http_requests_total", "HTTP requests",
        ("method", "path", "status"), None,
    ),
    "http_request_duration_seconds": (
        Histogram, "listings_http_request_duration_seconds", "HTTP request latency",
        ("method", "path"), _LATENCY_BUCKETS,
    ),
    "cache_hits_total": (
        Counter, "listings_cache_hits_total", "Cache hits", ("category",), None,
    ),
    "cache_misses_total": (
        Counter, "listings_cache_misses_total", "Cache misses", ("category",), None,
    ),
    "cache_degraded_total": (
        Counter, "listings_cache_degraded_total",
        "Cache operations skipped because the backend failed", ("operation", "kind"), None,
    ),
    "cache_invalidated_keys_total": (
        Counter, "listings_cache_invalidated_keys_total",
        "Cache keys removed by write invalidation", (), None,
    ),
    "cache_operation_duration_seconds": (
        Histogram, "listings_cache_operation_duration_seconds", "Cache backend latency",
        ("operation",), _CACHE_BUCKETS,
    ),
}


@dataclass
class MetricsRegistry:
    """Holds the process metrics; every attribute starts as a no-op."""

    http_requests_total: Any = _NOOP
    http_request_duration_seconds: Any = _NOOP
    cache_hits_total: Any = _NOOP
    cache_misses_total: Any = _NOOP
    cache_degraded_total: Any = _NOOP
    cache_invalidated_keys_total: Any = _NOOP
    cache_operation_duration_seconds: Any = _NOOP

    registry: CollectorRegistry | None = field(default=None, repr=False)
    _initialized: bool = field(default=False, repr=False)

    def initialize(self) -> None:
        if self._initialized:
            return
        self._initialized = True
        if not settings.enable_metrics:
            logger.info("Metrics disabled")
            return

        self.registry = CollectorRegistry()
        for attr, (kind, name, doc, labels, buckets) in _DEFINITIONS.items():
            options: dict[str, Any] = {"registry": self.registry}
            if buckets is not None:
                options["buckets"] = buckets
            setattr(self, attr, kind(name, doc, labels, **options))
        logger.info(f"Prometheus metrics initialized ({len(_DEFINITIONS)} families)")

    def generate_latest(self) -> bytes:
        if self.registry is None:
            return b"# Metrics disabled\n"
        return generate_latest(self.registry)


metrics_registry = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """Return the process registry, creating its metrics on first use."""
    metrics_registry.initialize()
    return metrics_registry


_UNMETERED = frozenset({"/health", "/health/live", "/health/ready", "/metrics"})
_PATH_RULES = (
    (re.compile(r"/PROP\d+"), "/{property_id}"),
    (re.compile(r"/user/[^/]+"), "/user/{user_id}"),
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count and time every API request, labelled by its route shape."""

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self.metrics = get_metrics()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in _UNMETERED:
            return await call_next(request)

        path = self._normalize_path(request.url.path)
        status = 500
        started = time.perf_counter()
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            elapsed = time.perf_counter() - started
            self.metrics.http_requests_total.labels(
                method=request.method, path=path, status=status
            ).inc()
            self.metrics.http_request_duration_seconds.labels(
                method=request.method, path=path
            ).observe(elapsed)

    @staticmethod
    def _normalize_path(path: str) -> str:
        for pattern, replacement in _PATH_RULES:
            path = pattern.sub(replacement, path)
        return path
