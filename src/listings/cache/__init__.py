"""Cache layer for the listings API.

Provides Redis caching in front of the property search:
- Deterministic keys from filter, sort and pagination parameters
- Per-category TTLs
- Pattern-based invalidation after writes commit
- Degrade-to-bypass when Redis is unreachable
"""

from listings.cache.errors import (
    BackendUnavailable,
    CacheError,
    CacheErrorKind,
    CacheLookup,
    CacheOutcome,
    CacheWarning,
    ReadResult,
    SerializationFailure,
    WriteResult,
)
from listings.cache.facade import (
    CacheFacade,
    InvalidationReport,
    MutationOutcome,
    get_cache_facade,
    reset_cache_facade,
)
from listings.cache.filters import DateRange, FilterSet, Range, UnknownFilterError
from listings.cache.invalidation import InvalidationPolicy, WriteKind, WriteOperation
from listings.cache.keys import CacheCategory, CacheKeys, derive_key, ttl_for
from listings.cache.redis import RedisCache, close_redis, get_redis

__all__ = [
    # Keys and filters
    "CacheCategory",
    "CacheKeys",
    "DateRange",
    "FilterSet",
    "Range",
    "UnknownFilterError",
    "derive_key",
    "ttl_for",
    # Store
    "RedisCache",
    "get_redis",
    "close_redis",
    # Invalidation
    "InvalidationPolicy",
    "WriteKind",
    "WriteOperation",
    # Facade
    "CacheFacade",
    "InvalidationReport",
    "MutationOutcome",
    "get_cache_facade",
    "reset_cache_facade",
    # Results and errors
    "BackendUnavailable",
    "CacheError",
    "CacheErrorKind",
    "CacheLookup",
    "CacheOutcome",
    "CacheWarning",
    "ReadResult",
    "SerializationFailure",
    "WriteResult",
]
