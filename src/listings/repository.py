"""Property data source.

``PropertyRepository`` is the contract the service needs from the document
store. ``InMemoryPropertyRepository`` is the bundled adapter: it keeps
records in process memory, assigns sequential ``PROP0001`` identifiers, and
evaluates FilterSets with the advanced-search semantics (substring match for
single state/city/location values, any-of for lists, inclusive ranges).
"""

from __future__ import annotations

import asyncio
import math
from datetime import UTC, date, datetime, time
from typing import Any, Protocol

from listings.cache.filters import DateRange, FilterSet, Range
from listings.models import (
    FilterOptions,
    NumericRange,
    Pagination,
    Property,
    PropertyCreate,
    PropertyUpdate,
    SearchPage,
)

# Public sort names and the attribute they read
SORT_ATTRIBUTES = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "price": "price",
    "areaSqFt": "area_sq_ft",
    "rating": "rating",
    "bedrooms": "bedrooms",
    "bathrooms": "bathrooms",
    "availableFrom": "available_from",
    "title": "title",
}


class PropertyNotFoundError(LookupError):
    """No property with the given identifier."""

    def __init__(self, property_id: str):
        self.property_id = property_id
        super().__init__(f"Property '{property_id}' not found")


class PropertyRepository(Protocol):
    """Document store operations used by the property service."""

    async def search(self, filters: FilterSet) -> SearchPage: ...

    async def list_all(self) -> list[Property]: ...

    async def list_by_owner(self, owner_id: str) -> list[Property]: ...

    async def get(self, property_id: str) -> Property | None: ...

    async def create(self, data: PropertyCreate, created_by: str) -> Property: ...

    async def update(self, property_id: str, data: PropertyUpdate) -> Property | None: ...

    async def delete(self, property_id: str) -> Property | None: ...

    async def filter_options(self) -> FilterOptions: ...


class InMemoryPropertyRepository:
    """Process-local property store."""

    def __init__(self) -> None:
        self._records: dict[str, Property] = {}
        self._sequence = 0
        self._lock = asyncio.Lock()

    def _next_id(self) -> str:
        self._sequence += 1
        return f"PROP{self._sequence:04d}"

    async def create(self, data: PropertyCreate, created_by: str) -> Property:
        async with self._lock:
            now = datetime.now(UTC)
            prop = Property(
                **data.model_dump(),
                property_id=self._next_id(),
                created_by=created_by,
                created_at=now,
                updated_at=now,
            )
            self._records[prop.property_id] = prop
            return prop

    async def update(self, property_id: str, data: PropertyUpdate) -> Property | None:
        async with self._lock:
            current = self._records.get(property_id)
            if current is None:
                return None
            changes = data.model_dump(exclude_unset=True)
            updated = Property.model_validate(
                {**current.model_dump(), **changes, "updated_at": datetime.now(UTC)}
            )
            self._records[property_id] = updated
            return updated

    async def delete(self, property_id: str) -> Property | None:
        async with self._lock:
            return self._records.pop(property_id, None)

    async def get(self, property_id: str) -> Property | None:
        return self._records.get(property_id)

    async def list_all(self) -> list[Property]:
        return sorted(self._records.values(), key=lambda p: p.created_at, reverse=True)

    async def list_by_owner(self, owner_id: str) -> list[Property]:
        return [p for p in await self.list_all() if p.created_by == owner_id]

    async def search(self, filters: FilterSet) -> SearchPage:
        matched = [p for p in self._records.values() if matches(p, filters)]
        ordered = _sort(matched, SORT_ATTRIBUTES[filters.sort_by], filters.sort_order == "desc")

        total = len(ordered)
        total_pages = math.ceil(total / filters.limit)
        page = ordered[filters.offset : filters.offset + filters.limit]

        return SearchPage(
            properties=page,
            pagination=Pagination(
                current_page=filters.page,
                total_pages=total_pages,
                total_results=total,
                results_per_page=filters.limit,
                has_next_page=filters.page < total_pages,
                has_prev_page=filters.page > 1,
            ),
            filters_applied=filters.applied_count,
        )

    async def filter_options(self) -> FilterOptions:
        records = list(self._records.values())
        prices = [p.price for p in records]
        areas = [p.area_sq_ft for p in records if p.area_sq_ft is not None]

        return FilterOptions(
            types=_distinct(p.type for p in records),
            listing_types=_distinct(p.listing_type for p in records),
            furnished_options=_distinct(p.furnished for p in records),
            listed_by_options=_distinct(p.listed_by for p in records),
            states=_distinct(p.state for p in records),
            cities=_distinct(p.city for p in records),
            amenities=_distinct(a for p in records for a in p.amenities),
            tags=_distinct(t for p in records for t in p.tags),
            price_range=NumericRange(min=min(prices), max=max(prices)) if prices else NumericRange(),
            area_range=NumericRange(min=min(areas), max=max(areas)) if areas else NumericRange(),
            bedroom_options=_distinct(p.bedrooms for p in records),
            bathroom_options=_distinct(p.bathrooms for p in records),
        )


def matches(prop: Property, filters: FilterSet) -> bool:
    """Whether a property satisfies every filter in the set."""
    if filters.search and not _text_match(prop, filters.search):
        return False

    for name in ("type", "listing_type", "furnished", "listed_by"):
        if not _value_match(getattr(prop, name), getattr(filters, name)):
            return False

    for name in ("state", "city"):
        wanted = getattr(filters, name)
        if isinstance(wanted, list):
            if getattr(prop, name) not in wanted:
                return False
        elif wanted is not None and not _contains(getattr(prop, name), wanted):
            return False

    if filters.location is not None and not _contains(prop.location, filters.location):
        return False

    if not (
        _in_range(prop.price, filters.price)
        and _in_range(prop.area_sq_ft, filters.area)
        and _in_range(prop.rating, filters.rating)
        and _in_dates(prop.created_at, filters.created)
    ):
        return False

    if not (
        _value_match(prop.bedrooms, filters.bedrooms)
        and _value_match(prop.bathrooms, filters.bathrooms)
        and _value_match(prop.is_verified, filters.is_verified)
        and _value_match(prop.is_available, filters.is_available)
    ):
        return False

    if filters.available_from is not None:
        if prop.available_from is None or prop.available_from > filters.available_from:
            return False

    if filters.amenities and not set(filters.amenities) & set(prop.amenities):
        return False
    if filters.tags and not set(filters.tags) & set(prop.tags):
        return False

    return True


def _text_match(prop: Property, text: str) -> bool:
    fields = [prop.title, prop.description, prop.location, prop.state, prop.city, *prop.tags]
    return any(_contains(f, text) for f in fields)


def _contains(value: str | None, text: str) -> bool:
    return value is not None and text.lower() in value.lower()


def _value_match(value: Any, wanted: Any) -> bool:
    if wanted is None:
        return True
    if isinstance(wanted, list):
        return value in wanted
    return bool(value == wanted)


def _in_range(value: float | None, bounds: Range | None) -> bool:
    if bounds is None:
        return True
    if value is None:
        return False
    if bounds.min is not None and value < bounds.min:
        return False
    return bounds.max is None or value <= bounds.max


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


def _in_dates(value: datetime, bounds: DateRange | None) -> bool:
    # Both bounds are instants at midnight UTC: createdBefore=2024-03-01 stops at
    # the start of that day
    if bounds is None:
        return True
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    if bounds.min is not None and value < _midnight(bounds.min):
        return False
    return bounds.max is None or value <= _midnight(bounds.max)


def _sort(records: list[Property], attribute: str, descending: bool) -> list[Property]:
    # Records without the sort value go last in either direction
    present = [p for p in records if getattr(p, attribute) is not None]
    missing = [p for p in records if getattr(p, attribute) is None]
    present.sort(key=lambda p: getattr(p, attribute), reverse=descending)
    return present + missing


def _distinct(values: Any) -> list[Any]:
    return sorted({v for v in values if v is not None and v != ""})
