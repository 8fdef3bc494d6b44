"""Observability module for the listings API.

Provides metrics and structured logging:
- Prometheus metrics for HTTP and the cache layer
- JSON structured logging with correlation IDs
"""

from listings.observability.logging import (
    LogContext,
    configure_logging,
    correlation_id_var,
    request_id_var,
    user_id_var,
)
from listings.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    metrics_registry,
)

__all__ = [
    # Logging
    "configure_logging",
    "LogContext",
    "request_id_var",
    "correlation_id_var",
    "user_id_var",
    # Metrics
    "metrics_registry",
    "get_metrics",
    "MetricsMiddleware",
]
