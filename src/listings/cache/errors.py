"""Non-fatal cache failures.

Cache problems never fail a request. Backend and serialization errors are
raised inside the store, caught at the store boundary, logged, and reported
to callers as ``CacheWarning`` entries on typed results so degradation can be
inspected without changing control flow.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class CacheError(Exception):
    """Base class for cache layer failures."""


class BackendUnavailable(CacheError):
    """Redis could not be reached or did not answer in time."""


class SerializationFailure(CacheError):
    """A value could not be encoded for, or decoded from, the backend."""


class CacheErrorKind(str, Enum):
    """Category of a degraded cache operation."""

    BACKEND_UNAVAILABLE = "backend_unavailable"
    SERIALIZATION = "serialization"
    INVALIDATION = "invalidation"


@dataclass(frozen=True)
class CacheWarning:
    """A cache operation that degraded instead of failing."""

    kind: CacheErrorKind
    operation: str
    key: str
    detail: str

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind.value,
            "operation": self.operation,
            "key": self.key,
            "detail": self.detail,
        }


@dataclass
class CacheLookup:
    """Result of a cache read. ``hit`` is False on miss and on any failure."""

    hit: bool = False
    value: Any = None
    warnings: list[CacheWarning] = field(default_factory=list)


@dataclass
class CacheOutcome:
    """Result of a cache write or delete. ``count`` is the number of keys affected."""

    count: int = 0
    warnings: list[CacheWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings


@dataclass
class ReadResult(Generic[T]):
    """Value returned by a read-through, with how it was served."""

    value: T
    cached: bool
    key: str
    warnings: list[CacheWarning] = field(default_factory=list)


@dataclass
class WriteResult(Generic[T]):
    """Value returned by a write-through, with the invalidation it triggered."""

    value: T
    patterns: list[str] = field(default_factory=list)
    invalidated: int = 0
    warnings: list[CacheWarning] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)
