"""Application services for the listings API."""

from listings.services.properties import ImportReport, PropertyService

__all__ = ["ImportReport", "PropertyService"]
