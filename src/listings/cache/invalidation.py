"""Cache invalidation policy for property writes.

Maps a write to the glob patterns that must be purged once the write has
committed. Any write to a property purges:

- the full listing (``properties:all``)
- every cached search page (``properties:search:*``), since any filter
  combination may now be stale
- the filter facet values (``properties:filter-options``)
- the property's detail entry, or every detail entry when the id is unknown
- the owner's listing, when the owner is known

Example:
    policy = InvalidationPolicy()
    op = WriteOperation(WriteKind.UPDATE, property_id="PROP0001", owner_id="u1")
    policy.keys_to_invalidate(op)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from listings.cache.keys import CacheCategory, CacheKeys, escape_pattern


class WriteKind(str, Enum):
    """Kind of property write."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    BULK_CREATE = "bulk_create"


@dataclass(frozen=True)
class WriteOperation:
    """A write to property records, annotated with what it touched."""

    kind: WriteKind
    property_id: str | None = None
    owner_id: str | None = None

    def annotate(
        self, property_id: str | None = None, owner_id: str | None = None
    ) -> WriteOperation:
        """Copy with identifiers filled in from a mutation outcome.

        Identifiers already set on the operation are kept.
        """
        return replace(
            self,
            property_id=self.property_id or property_id,
            owner_id=self.owner_id or owner_id,
        )


class InvalidationPolicy:
    """Decides which cache patterns a write invalidates."""

    def keys_to_invalidate(self, operation: WriteOperation) -> list[str]:
        """Glob patterns to purge after ``operation`` commits."""
        patterns = [
            CacheKeys.ALL_PROPERTIES,
            CacheKeys.category_pattern(CacheCategory.SEARCH_RESULTS),
            # Facets are recomputed on every write rather than diffed
            CacheKeys.FILTER_OPTIONS,
        ]

        if operation.property_id:
            patterns.append(
                CacheKeys.property_detail(escape_pattern(operation.property_id))
            )
        else:
            patterns.append(CacheKeys.category_pattern(CacheCategory.PROPERTY_DETAIL))

        if operation.owner_id:
            patterns.append(CacheKeys.user_properties(escape_pattern(operation.owner_id)))

        return patterns
