"""FastAPI application factory for the listings API.

Creates the application with:
- Property listing routers (/api/properties)
- Cache administration (/api/cache)
- Health probes and Prometheus metrics
- Lifecycle management for the Redis connection
- Consistent error responses
- ORJSON for fast JSON serialization
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from pydantic import ValidationError
from starlette.types import ExceptionHandler

from listings.api.errors import (
    ApiError,
    api_exception_handler,
    generic_exception_handler,
    request_validation_exception_handler,
    validation_exception_handler,
)
from listings.api.middleware import CorrelationMiddleware
from listings.api.routers import cache, health, properties
from listings.api.routers import metrics as metrics_router
from listings.cache.errors import BackendUnavailable
from listings.cache.facade import CacheFacade, get_cache_facade, reset_cache_facade
from listings.cache.redis import close_redis, get_redis
from listings.config import settings
from listings.observability import configure_logging
from listings.observability.metrics import MetricsMiddleware, get_metrics
from listings.repository import InMemoryPropertyRepository, PropertyRepository
from listings.services.properties import PropertyService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    On startup:
    - Configure structured logging
    - Initialize Prometheus metrics
    - Connect to Redis (a failure only disables caching until it recovers)

    On shutdown:
    - Close Redis connections
    """
    configure_logging(
        json_format=settings.env != "dev",
        level=settings.log_level,
    )
    get_metrics()

    logger.info(f"Starting listings API ({settings.env})")
    if settings.cache_enabled:
        try:
            await get_redis()
        except BackendUnavailable as e:
            logger.warning(f"Redis unavailable at startup, serving without cache: {e}")
    logger.info("Listings API startup complete")

    yield

    logger.info("Shutting down listings API")
    await close_redis()
    reset_cache_facade()
    logger.info("Listings API shutdown complete")


def create_app(
    repository: PropertyRepository | None = None,
    cache_facade: CacheFacade | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        repository: Property data source (defaults to the in-memory store)
        cache_facade: Cache entry point (defaults to the process-wide facade)
    """
    app = FastAPI(
        title="Listings API",
        description="Property listing backend with a Redis cache layer",
        version="0.1.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    facade = cache_facade or get_cache_facade()
    app.state.cache = facade
    app.state.property_service = PropertyService(
        repository or InMemoryPropertyRepository(), facade
    )

    # Last added runs outermost: metrics wraps correlation
    app.add_middleware(CorrelationMiddleware)
    if settings.enable_metrics:
        app.add_middleware(MetricsMiddleware)

    app.add_exception_handler(ApiError, cast(ExceptionHandler, api_exception_handler))
    app.add_exception_handler(
        RequestValidationError, cast(ExceptionHandler, request_validation_exception_handler)
    )
    app.add_exception_handler(
        ValidationError, cast(ExceptionHandler, validation_exception_handler)
    )
    app.add_exception_handler(Exception, cast(ExceptionHandler, generic_exception_handler))

    app.include_router(health.router)
    if settings.enable_metrics:
        app.include_router(metrics_router.router)
    app.include_router(properties.router)
    app.include_router(cache.router)

    return app
