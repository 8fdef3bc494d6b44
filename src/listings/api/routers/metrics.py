"""Prometheus scrape endpoint for the cache and HTTP metrics."""

from __future__ import annotations

from fastapi import APIRouter
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.responses import Response

from listings.observability.metrics import get_metrics

router = APIRouter(tags=["observability"])


@router.get(
    "/metrics",
    response_class=Response,
    summary="Prometheus metrics",
    responses={200: {"content": {CONTENT_TYPE_LATEST: {}}}},
    include_in_schema=False,
)
async def scrape() -> Response:
    return Response(get_metrics().generate_latest(), media_type=CONTENT_TYPE_LATEST)
