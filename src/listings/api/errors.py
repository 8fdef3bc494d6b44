"""Error responses for the listings API.

Every error is rendered as a Result/Message structure:

    {"messages": [{"code": "NotFound", "messageType": "Error",
                   "text": "...", "timestamp": "..."}]}

Validation errors carry field-level details. Data source failures surface
as 500 with the underlying error's message.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from listings.services.properties import validation_details

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    """Type of message in error response."""

    ERROR = "Error"
    WARNING = "Warning"
    INFO = "Info"
    EXCEPTION = "Exception"


class Message(BaseModel):
    """Error message."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    code: str
    message_type: MessageType = Field(alias="messageType")
    text: str
    timestamp: str | None = None
    details: list[dict[str, Any]] | None = None


class Result(BaseModel):
    """Result wrapper for errors."""

    model_config = {"extra": "forbid"}

    messages: list[Message]


def error_response(
    status_code: int,
    code: str,
    text: str,
    message_type: MessageType = MessageType.ERROR,
    details: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    """Render a single-message Result body."""
    message = Message(
        code=code,
        messageType=message_type,
        text=text,
        timestamp=datetime.now(UTC).isoformat(),
        details=details,
    )
    body = Result(messages=[message]).model_dump(by_alias=True, exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


class ApiError(HTTPException):
    """Base exception for API errors."""

    def __init__(
        self,
        status_code: int,
        code: str,
        text: str,
        message_type: MessageType = MessageType.ERROR,
    ):
        self.code = code
        self.text = text
        self.message_type = message_type
        super().__init__(status_code=status_code, detail=text)


class NotFoundError(ApiError):
    """Resource not found (404)."""

    def __init__(self, resource_type: str, identifier: str):
        super().__init__(
            status_code=404,
            code="NotFound",
            text=f"{resource_type} with identifier '{identifier}' not found",
        )


class BadRequestError(ApiError):
    """Invalid request (400)."""

    def __init__(self, text: str):
        super().__init__(status_code=400, code="BadRequest", text=text)


class CacheUnavailableError(ApiError):
    """Cache backend unreachable on an admin operation (503)."""

    def __init__(self, text: str = "Cache backend is unavailable"):
        super().__init__(status_code=503, code="CacheUnavailable", text=text)


async def api_exception_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.status_code, exc.code, exc.text, exc.message_type)


async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Pydantic errors raised while handling a request (e.g. query filters)."""
    return error_response(400, "BadRequest", "Validation failed", details=validation_details(exc))


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies and parameters rejected by FastAPI itself."""
    details = [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return error_response(400, "BadRequest", "Validation failed", details=details)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Data source failures and anything else unexpected become a 500."""
    logger.error(f"Unhandled {type(exc).__name__}: {exc}", exc_info=exc)
    return error_response(
        500,
        "InternalServerError",
        f"Internal server error: {exc}",
        message_type=MessageType.EXCEPTION,
    )
