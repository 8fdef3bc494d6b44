"""Request correlation middleware.

Binds the request id, the correlation id and the acting user (``X-User-Id``)
into the logging context for the lifetime of a request, and echoes the ids
back so clients can match their calls to server log lines.
"""

from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from listings.observability.logging import LogContext

REQUEST_ID_HEADER = "x-request-id"
CORRELATION_ID_HEADER = "x-correlation-id"
USER_ID_HEADER = "x-user-id"


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Attach correlation ids to the log context and the response.

    A missing ``x-request-id`` is generated; a missing ``x-correlation-id``
    falls back to the request id.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        headers = request.headers
        request_id = headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        correlation_id = headers.get(CORRELATION_ID_HEADER) or request_id

        request.state.request_id = request_id
        request.state.correlation_id = correlation_id

        with LogContext(
            request_id=request_id,
            correlation_id=correlation_id,
            user_id=headers.get(USER_ID_HEADER, ""),
        ):
            response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
