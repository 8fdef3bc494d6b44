"""Cache key schema for the listings API.

Key families:
- properties:filter-options           distinct facet values for search dropdowns
- properties:all                      full property listing
- properties:user:{user_id}           listings owned by one user
- property:detail:{property_id}       a single property
- properties:search:{digest}          one search result page

Search keys carry an MD5 hex digest of the canonical (recursively key-sorted)
JSON form of the filters, so the order in which a caller built its filter
object never changes the key. Identifier keys use the identifier literally.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from enum import Enum
from typing import Any

import orjson

from listings.cache.filters import FilterSet
from listings.config import settings

# Non-string mapping keys are rejected, never coerced: {1: "a"} and {"1": "a"}
# must not share a key
CANONICAL_OPTIONS = orjson.OPT_SORT_KEYS | orjson.OPT_UTC_Z

_GLOB_SPECIAL = set("*?[]\\")


class CacheCategory(str, Enum):
    """Namespace and TTL class of a cache entry."""

    FILTER_OPTIONS = "filter_options"
    ALL_PROPERTIES = "all_properties"
    USER_PROPERTIES = "user_properties"
    PROPERTY_DETAIL = "property_detail"
    SEARCH_RESULTS = "search_results"


SINGLETON_CATEGORIES = frozenset({CacheCategory.FILTER_OPTIONS, CacheCategory.ALL_PROPERTIES})
IDENTIFIER_CATEGORIES = frozenset(
    {CacheCategory.USER_PROPERTIES, CacheCategory.PROPERTY_DETAIL}
)


class CacheKeys:
    """Cache key generator following the listing key families."""

    FILTER_OPTIONS = "properties:filter-options"
    ALL_PROPERTIES = "properties:all"
    USER_PREFIX = "properties:user"
    DETAIL_PREFIX = "property:detail"
    SEARCH_PREFIX = "properties:search"

    # Everything the listings API ever caches
    ALL_PATTERNS = ("properties:*", "property:*")

    @classmethod
    def user_properties(cls, user_id: str) -> str:
        """Key for the listings owned by a user."""
        return f"{cls.USER_PREFIX}:{user_id}"

    @classmethod
    def property_detail(cls, property_id: str) -> str:
        """Key for a single property."""
        return f"{cls.DETAIL_PREFIX}:{property_id}"

    @classmethod
    def search_results(cls, digest: str) -> str:
        """Key for a search result page, given the filter digest."""
        return f"{cls.SEARCH_PREFIX}:{digest}"

    @classmethod
    def category_pattern(cls, category: CacheCategory) -> str:
        """Glob matching every key of a category."""
        if category is CacheCategory.FILTER_OPTIONS:
            return cls.FILTER_OPTIONS
        if category is CacheCategory.ALL_PROPERTIES:
            return cls.ALL_PROPERTIES
        if category is CacheCategory.USER_PROPERTIES:
            return f"{cls.USER_PREFIX}:*"
        if category is CacheCategory.PROPERTY_DETAIL:
            return f"{cls.DETAIL_PREFIX}:*"
        return f"{cls.SEARCH_PREFIX}:*"

    @classmethod
    def is_managed(cls, pattern: str) -> bool:
        """Whether a key or pattern falls inside the listing key families."""
        return any(pattern.startswith(p[:-1]) for p in cls.ALL_PATTERNS)


def escape_pattern(value: str) -> str:
    """Escape glob metacharacters so ``value`` matches only itself."""
    return "".join(f"\\{ch}" if ch in _GLOB_SPECIAL else ch for ch in value)


def canonical_params(params: FilterSet | Mapping[str, Any]) -> bytes:
    """Canonical JSON bytes of search parameters, keys sorted at every level.

    Raises:
        ValueError: If a mapping key is not a string or a value has no JSON form
    """
    if isinstance(params, FilterSet):
        params = params.key_params()
    elif not isinstance(params, dict):
        params = dict(params)
    try:
        return orjson.dumps(params, option=CANONICAL_OPTIONS)
    except orjson.JSONEncodeError as e:
        raise ValueError(f"search parameters have no canonical form: {e}") from e


def params_digest(params: FilterSet | Mapping[str, Any]) -> str:
    """128-bit hex digest of the canonical parameters."""
    return hashlib.md5(canonical_params(params), usedforsecurity=False).hexdigest()


def derive_key(category: CacheCategory, params: Any = None) -> str:
    """Derive the cache key for a category and its parameters.

    Singleton categories take no parameters, identifier categories take the
    identifier string, search results take a FilterSet or a plain mapping.

    Raises:
        ValueError: If ``params`` does not fit the category
    """
    if category in SINGLETON_CATEGORIES:
        if params is not None:
            raise ValueError(f"{category.value} keys take no parameters")
        return CacheKeys.category_pattern(category)

    if category in IDENTIFIER_CATEGORIES:
        if not isinstance(params, str) or not params:
            raise ValueError(f"{category.value} keys need a non-empty identifier")
        if category is CacheCategory.USER_PROPERTIES:
            return CacheKeys.user_properties(params)
        return CacheKeys.property_detail(params)

    if not isinstance(params, (FilterSet, Mapping)):
        raise ValueError("search keys need a FilterSet or a mapping of parameters")
    return CacheKeys.search_results(params_digest(params))


def ttl_for(category: CacheCategory) -> int:
    """Configured time-to-live, in seconds, for a category."""
    return {
        CacheCategory.FILTER_OPTIONS: settings.cache_ttl_filter_options,
        CacheCategory.ALL_PROPERTIES: settings.cache_ttl_all_properties,
        CacheCategory.USER_PROPERTIES: settings.cache_ttl_user_properties,
        CacheCategory.PROPERTY_DETAIL: settings.cache_ttl_property_detail,
        CacheCategory.SEARCH_RESULTS: settings.cache_ttl_search_results,
    }[category]
