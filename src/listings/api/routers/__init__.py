"""API routers for the listings API."""

from listings.api.routers import cache, health, metrics, properties

__all__ = [
    "cache",
    "health",
    "metrics",
    "properties",
]
