"""Search filter schema.

A ``FilterSet`` is the normalized parameter bundle behind a property search.
Every legal filter field is enumerated here; each one is a scalar, a list of
scalars, a ``{min, max}`` range, or a boolean. Raw query parameters use the
public camelCase names (``minPrice``, ``listingType``...) and are folded into
the typed fields by ``FilterSet.from_query``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SortField = Literal[
    "createdAt",
    "updatedAt",
    "price",
    "areaSqFt",
    "rating",
    "bedrooms",
    "bathrooms",
    "availableFrom",
    "title",
]

# Raw bound parameters and the (field, bound) they populate
RANGE_BOUNDS: dict[str, tuple[str, str]] = {
    "minPrice": ("price", "min"),
    "maxPrice": ("price", "max"),
    "minArea": ("area", "min"),
    "maxArea": ("area", "max"),
    "minRating": ("rating", "min"),
    "maxRating": ("rating", "max"),
    "createdAfter": ("created", "min"),
    "createdBefore": ("created", "max"),
}


class UnknownFilterError(ValueError):
    """Raised by strict parsing when a query carries unrecognized keys."""

    def __init__(self, keys: Iterable[str]):
        self.keys = sorted(keys)
        super().__init__(f"Unknown filter parameter(s): {', '.join(self.keys)}")


class Range(BaseModel):
    """Inclusive numeric range; either bound may be open."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    min: float | None = None
    max: float | None = None


class DateRange(BaseModel):
    """Inclusive date range; either bound may be open."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    min: date | None = None
    max: date | None = None


class FilterSet(BaseModel):
    """Filters, sort and pagination for a property search."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    # Text search across title, description, location, state, city and tags
    search: str | None = None

    # Facets: a single value or any-of list
    type: str | list[str] | None = None
    listing_type: str | list[str] | None = None
    furnished: str | list[str] | None = None
    listed_by: str | list[str] | None = None
    state: str | list[str] | None = None
    city: str | list[str] | None = None
    location: str | None = None

    # Ranges
    price: Range | None = None
    area: Range | None = None
    rating: Range | None = None
    created: DateRange | None = None

    bedrooms: int | list[int] | None = None
    bathrooms: int | list[int] | None = None

    is_verified: bool | None = None
    is_available: bool | None = None
    available_from: date | None = None

    # Contains-any lists
    amenities: list[str] | None = None
    tags: list[str] | None = None

    sort_by: SortField = "createdAt"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)

    @field_validator(
        "search", "type", "listing_type", "furnished", "listed_by", "state", "city", "location"
    )
    @classmethod
    def _normalize_text(cls, value: str | list[str] | None) -> str | list[str] | None:
        if isinstance(value, list):
            return _normalize_list(value)
        if value is not None:
            value = value.strip()
        return value or None

    @field_validator("amenities", "tags", mode="before")
    @classmethod
    def _wrap_scalar(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("amenities", "tags")
    @classmethod
    def _normalize_members(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return _normalize_list(value)

    @field_validator("bedrooms", "bathrooms")
    @classmethod
    def _normalize_counts(cls, value: int | list[int] | None) -> int | list[int] | None:
        if isinstance(value, list):
            return sorted(set(value)) or None
        return value

    @classmethod
    def from_query(cls, params: Mapping[str, Any], *, strict: bool = False) -> FilterSet:
        """Build a FilterSet from raw request parameters.

        Empty values are dropped. Unrecognized keys are ignored, or rejected
        with ``UnknownFilterError`` when ``strict`` is set. Raises
        ``pydantic.ValidationError`` for values of the wrong shape.
        """
        data: dict[str, Any] = {}
        unknown: list[str] = []

        for raw_key, value in params.items():
            if _is_empty(value):
                continue
            if raw_key in RANGE_BOUNDS:
                field_name, bound = RANGE_BOUNDS[raw_key]
                data.setdefault(field_name, {})[bound] = value
            elif raw_key in FILTER_KEYS:
                data[raw_key] = value
            else:
                unknown.append(raw_key)

        if unknown and strict:
            raise UnknownFilterError(unknown)

        return cls.model_validate(data)

    def key_params(self) -> dict[str, Any]:
        """Canonical mapping for cache key derivation (defaults kept, unset dropped)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @property
    def applied_count(self) -> int:
        """Number of filters in effect, excluding sort and pagination."""
        paging = {"sort_by", "sort_order", "page", "limit"}
        return sum(
            1
            for name in type(self).model_fields
            if name not in paging and getattr(self, name) is not None
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def _normalize_list(values: list[str]) -> list[str] | None:
    # Lists are any-of matches, so order and duplicates carry no meaning
    cleaned = {v.strip() for v in values if v and v.strip()}
    return sorted(cleaned) or None


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) == 0
    return False


FILTER_KEYS: frozenset[str] = frozenset(
    key
    for name, info in FilterSet.model_fields.items()
    for key in (name, info.alias or name)
)
