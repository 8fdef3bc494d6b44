"""Structured logging for the listings API.

A ``CorrelationFilter`` on the root handler copies the request context
(request, correlation and acting user ids) onto every record, and one of two
formatters renders it:

- ``JsonFormatter``: one JSON object per line, for log shipping
- ``ConsoleFormatter``: aligned, optionally colored text, for local runs

Usage:
    from listings.observability.logging import LogContext, configure_logging

    configure_logging(json_format=True, level="INFO")

    with LogContext(user_id="64f1c0ffee"):
        logger.info("Importing properties")  # carries user_id
"""

from __future__ import annotations

import contextvars
import logging
import sys
from datetime import datetime, timezone
from typing import Any

import orjson

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)
user_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("user_id", default="")

CONTEXT_FIELDS: dict[str, contextvars.ContextVar[str]] = {
    "request_id": request_id_var,
    "correlation_id": correlation_id_var,
    "user_id": user_id_var,
}

# Attributes every LogRecord has; anything else came in through ``extra=``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    *CONTEXT_FIELDS,
}


def _context() -> dict[str, str]:
    return {name: value for name, var in CONTEXT_FIELDS.items() if (value := var.get())}


class CorrelationFilter(logging.Filter):
    """Attach the current request context to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name, value in _context().items():
            if not hasattr(record, name):
                setattr(record, name, value)
        return True


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    {"timestamp": "2026-01-10T12:34:56.789000+00:00", "level": "WARNING",
     "logger": "listings.cache.redis", "message": "Cache get degraded ...",
     "location": "redis:_degrade:241", "request_id": "abc-123",
     "user_id": "64f1c0ffee", "cache_key": "properties:all"}

    Fields passed through ``extra=`` are merged in at the top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None) or CONTEXT_FIELDS[name].get()
            if value:
                data[name] = value

        for key, value in _extras(record).items():
            data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return orjson.dumps(data, default=str).decode()


class ConsoleFormatter(logging.Formatter):
    """Readable single-line output.

    2026-01-10 12:34:56 | WARNING  | listings.cache.redis | Cache get degraded ... | req=abc-123
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.use_colors:
            level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{level}{self.RESET}"

        stamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        line = f"{stamp} | {level} | {record.name} | {record.getMessage()}"

        request_id = getattr(record, "request_id", None) or request_id_var.get()
        user_id = getattr(record, "user_id", None) or user_id_var.get()
        tags = []
        if request_id:
            tags.append(f"req={request_id[:8]}")
        if user_id:
            tags.append(f"user={user_id}")
        if tags:
            line += f" | {' '.join(tags)}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    json_format: bool = True,
    level: str = "INFO",
    use_colors: bool = True,
) -> None:
    """Replace the root handlers with one structured stderr handler."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(CorrelationFilter())
    handler.setFormatter(JsonFormatter() if json_format else ConsoleFormatter(use_colors))
    root.addHandler(handler)

    for name, floor in (
        ("uvicorn.access", logging.WARNING),
        ("httpx", logging.WARNING),
        ("httpcore", logging.WARNING),
        # redis-py logs every reconnect attempt while the backend is down
        ("redis", logging.ERROR),
    ):
        logging.getLogger(name).setLevel(floor)


class LogContext:
    """Bind request context fields for the duration of a block.

    Only the names in ``CONTEXT_FIELDS`` are bound; others are ignored.
    """

    def __init__(self, **fields: str) -> None:
        self.fields = {k: v for k, v in fields.items() if k in CONTEXT_FIELDS}
        self._tokens: list[tuple[contextvars.ContextVar[str], contextvars.Token[str]]] = []

    def __enter__(self) -> LogContext:
        for name, value in self.fields.items():
            var = CONTEXT_FIELDS[name]
            self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, *exc: Any) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)
