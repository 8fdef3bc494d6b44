"""Property service: repository reads and writes routed through the cache.

Every read goes through ``CacheFacade.read_through`` with the matching
category; every write goes through ``write_through`` so the caches it makes
stale are purged after the repository commits. Cached payloads are the JSON
form of the models, so a hit and a miss return identical values.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from listings.cache.errors import ReadResult, WriteResult
from listings.cache.facade import CacheFacade, MutationOutcome, get_cache_facade
from listings.cache.filters import FilterSet
from listings.cache.invalidation import WriteKind, WriteOperation
from listings.cache.keys import CacheCategory
from listings.models import PropertyCreate, PropertyUpdate
from listings.repository import PropertyNotFoundError, PropertyRepository

logger = logging.getLogger(__name__)


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def validation_details(error: ValidationError) -> list[dict[str, str]]:
    """Flatten a ValidationError into field/message pairs."""
    return [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in error.errors()
    ]


@dataclass
class ImportReport:
    """Outcome of a bulk import."""

    total_records: int = 0
    successful_inserts: int = 0
    failed_inserts: int = 0
    inserted: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRecords": self.total_records,
            "successfulInserts": self.successful_inserts,
            "failedInserts": self.failed_inserts,
            "insertedProperties": self.inserted,
            "errors": self.errors,
        }


class PropertyService:
    """Cached access to property listings."""

    def __init__(self, repository: PropertyRepository, cache: CacheFacade | None = None):
        self.repository = repository
        self.cache = cache or get_cache_facade()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_filter_options(self) -> ReadResult[dict[str, Any]]:
        async def load() -> dict[str, Any]:
            return _dump(await self.repository.filter_options())

        return await self.cache.read_through(CacheCategory.FILTER_OPTIONS, None, load)

    async def search(self, filters: FilterSet) -> ReadResult[dict[str, Any]]:
        async def load() -> dict[str, Any]:
            return _dump(await self.repository.search(filters))

        return await self.cache.read_through(CacheCategory.SEARCH_RESULTS, filters, load)

    async def list_all(self) -> ReadResult[list[dict[str, Any]]]:
        async def load() -> list[dict[str, Any]]:
            return [_dump(p) for p in await self.repository.list_all()]

        return await self.cache.read_through(CacheCategory.ALL_PROPERTIES, None, load)

    async def list_for_user(self, user_id: str) -> ReadResult[list[dict[str, Any]]]:
        async def load() -> list[dict[str, Any]]:
            return [_dump(p) for p in await self.repository.list_by_owner(user_id)]

        return await self.cache.read_through(CacheCategory.USER_PROPERTIES, user_id, load)

    async def get(self, property_id: str) -> ReadResult[dict[str, Any] | None]:
        async def load() -> dict[str, Any] | None:
            prop = await self.repository.get(property_id)
            return _dump(prop) if prop is not None else None

        return await self.cache.read_through(CacheCategory.PROPERTY_DETAIL, property_id, load)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create(self, data: PropertyCreate, created_by: str) -> WriteResult[dict[str, Any]]:
        async def mutate() -> MutationOutcome[dict[str, Any]]:
            prop = await self.repository.create(data, created_by)
            logger.info(f"Created property {prop.property_id}")
            return MutationOutcome(_dump(prop), prop.property_id, prop.created_by)

        return await self.cache.write_through(
            WriteOperation(WriteKind.CREATE, owner_id=created_by), mutate
        )

    async def update(self, property_id: str, data: PropertyUpdate) -> WriteResult[dict[str, Any]]:
        """Apply a partial update.

        Raises:
            PropertyNotFoundError: If the property does not exist
        """

        async def mutate() -> MutationOutcome[dict[str, Any]]:
            prop = await self.repository.update(property_id, data)
            if prop is None:
                raise PropertyNotFoundError(property_id)
            logger.info(f"Updated property {property_id}")
            return MutationOutcome(_dump(prop), prop.property_id, prop.created_by)

        return await self.cache.write_through(
            WriteOperation(WriteKind.UPDATE, property_id=property_id), mutate
        )

    async def delete(self, property_id: str) -> WriteResult[dict[str, Any]]:
        """Delete a property.

        Raises:
            PropertyNotFoundError: If the property does not exist
        """

        async def mutate() -> MutationOutcome[dict[str, Any]]:
            prop = await self.repository.delete(property_id)
            if prop is None:
                raise PropertyNotFoundError(property_id)
            logger.info(f"Deleted property {property_id}")
            return MutationOutcome(_dump(prop), prop.property_id, prop.created_by)

        return await self.cache.write_through(
            WriteOperation(WriteKind.DELETE, property_id=property_id), mutate
        )

    async def import_properties(
        self, rows: Iterable[Mapping[str, Any]], created_by: str
    ) -> WriteResult[ImportReport]:
        """Create properties from already-parsed rows.

        Invalid rows are reported and skipped. The caches are invalidated once
        for the whole batch.
        """

        async def mutate() -> MutationOutcome[ImportReport]:
            report = ImportReport()
            for index, row in enumerate(rows, start=1):
                report.total_records += 1
                try:
                    data = PropertyCreate.model_validate(row)
                except ValidationError as e:
                    report.failed_inserts += 1
                    report.errors.append(
                        {
                            "row": index,
                            "error": "Validation failed",
                            "details": validation_details(e),
                        }
                    )
                    continue

                # Rows already inserted stay committed, so one failing row must
                # not abort the batch before invalidation runs
                try:
                    prop = await self.repository.create(data, created_by)
                except Exception as e:
                    logger.error(f"Error inserting imported row {index}: {e}")
                    report.failed_inserts += 1
                    report.errors.append(
                        {"row": index, "error": "Database insertion failed", "details": str(e)}
                    )
                    continue

                report.successful_inserts += 1
                report.inserted.append(
                    {
                        "propertyId": prop.property_id,
                        "title": prop.title,
                        "type": prop.type,
                        "price": prop.price,
                        "location": f"{prop.city}, {prop.state}",
                    }
                )

            logger.info(
                f"Imported {report.successful_inserts}/{report.total_records} properties "
                f"for {created_by}"
            )
            return MutationOutcome(report, owner_id=created_by)

        return await self.cache.write_through(
            WriteOperation(WriteKind.BULK_CREATE, owner_id=created_by), mutate
        )
