"""Property listing models.

Field names are snake_case in Python and camelCase on the wire
(``areaSqFt``, ``listingType``...), matching the public API.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PropertyType = Literal["Apartment", "Villa", "Bungalow", "Studio", "Penthouse"]
Furnished = Literal["Furnished", "Unfurnished", "Semi"]
ListedBy = Literal["Owner", "Agent", "Builder"]
ListingType = Literal["rent", "sale", "lease"]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
    )


class PropertyCreate(CamelModel):
    """Fields accepted when listing a property."""

    title: str = Field(min_length=1)
    description: str | None = None
    type: PropertyType
    price: float = Field(ge=0)
    state: str = Field(min_length=1)
    city: str = Field(min_length=1)
    area_sq_ft: float | None = Field(default=None, ge=0)
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: int | None = Field(default=None, ge=0)
    amenities: list[str] = Field(default_factory=list)
    furnished: Furnished = "Unfurnished"
    available_from: date | None = None
    listed_by: ListedBy = "Owner"
    tags: list[str] = Field(default_factory=list)
    color_theme: str | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    is_verified: bool = False
    listing_type: ListingType = "rent"
    location: str | None = None
    images: list[str] = Field(default_factory=list)
    is_available: bool = True


class PropertyUpdate(CamelModel):
    """Partial update; only fields that are set are applied."""

    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    type: PropertyType | None = None
    price: float | None = Field(default=None, ge=0)
    state: str | None = None
    city: str | None = None
    area_sq_ft: float | None = Field(default=None, ge=0)
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: int | None = Field(default=None, ge=0)
    amenities: list[str] | None = None
    furnished: Furnished | None = None
    available_from: date | None = None
    listed_by: ListedBy | None = None
    tags: list[str] | None = None
    color_theme: str | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    is_verified: bool | None = None
    listing_type: ListingType | None = None
    location: str | None = None
    images: list[str] | None = None
    is_available: bool | None = None


class Property(PropertyCreate):
    """A stored property listing."""

    property_id: str
    created_by: str
    created_at: datetime
    updated_at: datetime


class NumericRange(CamelModel):
    min: float = 0
    max: float = 0


class FilterOptions(CamelModel):
    """Distinct facet values used to populate search dropdowns."""

    types: list[str] = Field(default_factory=list)
    listing_types: list[str] = Field(default_factory=list)
    furnished_options: list[str] = Field(default_factory=list)
    listed_by_options: list[str] = Field(default_factory=list)
    states: list[str] = Field(default_factory=list)
    cities: list[str] = Field(default_factory=list)
    amenities: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    price_range: NumericRange = Field(default_factory=NumericRange)
    area_range: NumericRange = Field(default_factory=NumericRange)
    bedroom_options: list[int] = Field(default_factory=list)
    bathroom_options: list[int] = Field(default_factory=list)


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_results: int
    results_per_page: int
    has_next_page: bool
    has_prev_page: bool


class SearchPage(CamelModel):
    """One page of search results."""

    properties: list[Property]
    pagination: Pagination
    filters_applied: int = 0
