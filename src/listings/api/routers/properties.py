"""Property listing endpoints.

Reads are served through the cache (the ``X-Cache`` response header says
HIT or MISS); writes purge the affected caches after they commit and report
any cache degradation in a ``warnings`` array without failing.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body
from fastapi.responses import ORJSONResponse

from listings.api.deps import ActingUser, PropertyServiceDep, QueryParams
from listings.api.errors import BadRequestError, NotFoundError
from listings.cache.errors import ReadResult, WriteResult
from listings.cache.filters import FilterSet, UnknownFilterError
from listings.models import PropertyCreate, PropertyUpdate
from listings.repository import PropertyNotFoundError

router = APIRouter(prefix="/api/properties", tags=["properties"])


def _read_response(result: ReadResult[Any], content: Any) -> ORJSONResponse:
    return ORJSONResponse(
        content=content,
        headers={"X-Cache": "HIT" if result.cached else "MISS"},
    )


def _write_response(
    result: WriteResult[Any], message: str, status_code: int = 200
) -> ORJSONResponse:
    content: dict[str, Any] = {"message": message, "property": result.value}
    if result.warnings:
        content["warnings"] = [w.to_dict() for w in result.warnings]
    return ORJSONResponse(content=content, status_code=status_code)


@router.get("")
async def list_properties(service: PropertyServiceDep) -> ORJSONResponse:
    """List every property, newest first."""
    result = await service.list_all()
    return _read_response(
        result,
        {
            "message": "Properties retrieved successfully",
            "count": len(result.value),
            "properties": result.value,
        },
    )


@router.get("/search")
async def search_properties(
    service: PropertyServiceDep,
    params: QueryParams,
    strict: bool = False,
) -> ORJSONResponse:
    """Advanced search with filters, sorting and pagination."""
    params.pop("strict", None)
    try:
        filters = FilterSet.from_query(params, strict=strict)
    except UnknownFilterError as e:
        raise BadRequestError(str(e))

    result = await service.search(filters)
    return _read_response(
        result,
        {
            "success": True,
            "message": "Properties retrieved successfully",
            "data": result.value,
        },
    )


@router.get("/filter-options")
async def get_filter_options(service: PropertyServiceDep) -> ORJSONResponse:
    """Distinct facet values for search dropdowns."""
    result = await service.get_filter_options()
    return _read_response(result, {"success": True, "data": result.value})


@router.get("/user/{user_id}")
async def list_user_properties(user_id: str, service: PropertyServiceDep) -> ORJSONResponse:
    """List the properties created by a user."""
    result = await service.list_for_user(user_id)
    if not result.value:
        raise NotFoundError("Properties for user", user_id)
    return _read_response(
        result,
        {
            "message": "Properties found successfully",
            "count": len(result.value),
            "properties": result.value,
        },
    )


@router.get("/{property_id}")
async def get_property(property_id: str, service: PropertyServiceDep) -> ORJSONResponse:
    """Get a single property."""
    result = await service.get(property_id)
    if result.value is None:
        raise NotFoundError("Property", property_id)
    return _read_response(result, result.value)


@router.post("", status_code=201)
async def create_property(
    data: PropertyCreate,
    service: PropertyServiceDep,
    user_id: ActingUser,
) -> ORJSONResponse:
    """List a new property owned by the acting user."""
    result = await service.create(data, user_id)
    return _write_response(result, "Property created successfully", status_code=201)


@router.patch("/{property_id}")
async def update_property(
    property_id: str,
    data: PropertyUpdate,
    service: PropertyServiceDep,
    user_id: ActingUser,
) -> ORJSONResponse:
    """Apply a partial update to a property."""
    try:
        result = await service.update(property_id, data)
    except PropertyNotFoundError:
        raise NotFoundError("Property", property_id)
    return _write_response(result, "Property updated successfully")


@router.delete("/{property_id}")
async def delete_property(
    property_id: str,
    service: PropertyServiceDep,
    user_id: ActingUser,
) -> ORJSONResponse:
    """Delete a property."""
    try:
        result = await service.delete(property_id)
    except PropertyNotFoundError:
        raise NotFoundError("Property", property_id)
    return _write_response(result, "Property deleted successfully")


@router.post("/import")
async def import_properties(
    service: PropertyServiceDep,
    user_id: ActingUser,
    rows: list[dict[str, Any]] = Body(...),
) -> ORJSONResponse:
    """Bulk-create properties from parsed import rows.

    Returns 201 when every row was inserted, 207 when some failed and 400
    when none succeeded.
    """
    result = await service.import_properties(rows, user_id)
    report = result.value

    content: dict[str, Any] = {
        "message": (
            f"Import completed. {report.successful_inserts}/{report.total_records} "
            "records inserted successfully."
        ),
        "results": report.to_dict(),
    }
    if result.warnings:
        content["warnings"] = [w.to_dict() for w in result.warnings]

    if report.successful_inserts == 0:
        status_code = 400
        content["message"] = "No properties were imported successfully"
    elif report.failed_inserts > 0:
        status_code = 207
    else:
        status_code = 201
    return ORJSONResponse(content=content, status_code=status_code)
