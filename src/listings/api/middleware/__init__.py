"""Middleware for the listings API.

- Correlation context for request tracing

Note: request metrics live in listings.observability.metrics.MetricsMiddleware
"""

from listings.api.middleware.correlation import CorrelationMiddleware

__all__ = [
    "CorrelationMiddleware",
]
