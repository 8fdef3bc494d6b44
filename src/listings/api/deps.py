"""Shared FastAPI dependencies for the listings routers."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, Header, Request

from listings.api.errors import BadRequestError
from listings.cache.facade import CacheFacade
from listings.services.properties import PropertyService


def get_property_service(request: Request) -> PropertyService:
    """FastAPI dependency returning the application's property service."""
    return request.app.state.property_service  # type: ignore[no-any-return]


def get_cache(request: Request) -> CacheFacade:
    """FastAPI dependency returning the application's cache facade."""
    return request.app.state.cache  # type: ignore[no-any-return]


def acting_user(
    x_user_id: Annotated[str | None, Header(alias="X-User-Id")] = None,
) -> str:
    """Identifier of the user making a write, set by the upstream auth layer."""
    if not x_user_id or not x_user_id.strip():
        raise BadRequestError("X-User-Id header is required for write operations")
    return x_user_id.strip()


def query_params(request: Request) -> dict[str, Any]:
    """Raw query parameters; repeated keys become lists."""
    params: dict[str, Any] = {}
    for key in request.query_params.keys():
        values = request.query_params.getlist(key)
        params[key] = values if len(values) > 1 else values[0]
    return params


# Type aliases for cleaner router signatures
PropertyServiceDep = Annotated[PropertyService, Depends(get_property_service)]
CacheDep = Annotated[CacheFacade, Depends(get_cache)]
ActingUser = Annotated[str, Depends(acting_user)]
QueryParams = Annotated[dict[str, Any], Depends(query_params)]
