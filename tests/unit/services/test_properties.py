"""Tests for the cached property service."""

from __future__ import annotations

import pytest

from listings.cache.errors import CacheErrorKind
from listings.cache.facade import CacheFacade
from listings.cache.filters import FilterSet
from listings.models import PropertyCreate, PropertyUpdate
from listings.repository import InMemoryPropertyRepository, PropertyNotFoundError
from listings.services.properties import PropertyService


async def _seed(service: PropertyService, make_payload, owner: str = "u1", **overrides):
    result = await service.create(PropertyCreate.model_validate(make_payload(**overrides)), owner)
    return result.value


class TestReads:
    """Test read-through behaviour."""

    @pytest.mark.asyncio
    async def test_list_all_is_cached(self, service: PropertyService, make_payload) -> None:
        await _seed(service, make_payload)

        first = await service.list_all()
        second = await service.list_all()

        assert not first.cached
        assert second.cached
        assert second.value == first.value
        assert second.value[0]["propertyId"] == "PROP0001"

    @pytest.mark.asyncio
    async def test_hit_and_miss_values_match(self, service: PropertyService, make_payload) -> None:
        """Cached payloads are the JSON form of the models."""
        await _seed(service, make_payload)
        miss = await service.get("PROP0001")
        hit = await service.get("PROP0001")
        assert hit.cached
        assert hit.value == miss.value
        assert hit.value["areaSqFt"] == 950

    @pytest.mark.asyncio
    async def test_missing_property_not_cached(self, service: PropertyService) -> None:
        for _ in range(2):
            result = await service.get("PROP0404")
            assert result.value is None
            assert not result.cached

    @pytest.mark.asyncio
    async def test_search(self, service: PropertyService, make_payload) -> None:
        await _seed(service, make_payload, city="Pune", price=12000)
        await _seed(service, make_payload, city="Mumbai", price=40000)

        filters = FilterSet.from_query({"city": "pun", "maxPrice": "20000"})
        result = await service.search(filters)

        page = result.value
        assert [p["city"] for p in page["properties"]] == ["Pune"]
        assert page["pagination"]["totalResults"] == 1
        assert page["filtersApplied"] == 2

    @pytest.mark.asyncio
    async def test_filter_options(self, service: PropertyService, make_payload) -> None:
        await _seed(service, make_payload, city="Pune", price=12000)
        await _seed(service, make_payload, city="Mumbai", price=40000, type="Villa")

        options = (await service.get_filter_options()).value

        assert options["cities"] == ["Mumbai", "Pune"]
        assert options["types"] == ["Apartment", "Villa"]
        assert options["priceRange"] == {"min": 12000.0, "max": 40000.0}

    @pytest.mark.asyncio
    async def test_list_for_user(self, service: PropertyService, make_payload) -> None:
        await _seed(service, make_payload, owner="u1")
        await _seed(service, make_payload, owner="u2")

        result = await service.list_for_user("u2")

        assert [p["createdBy"] for p in result.value] == ["u2"]


class TestWrites:
    """Test that writes make later reads fresh."""

    @pytest.mark.asyncio
    async def test_create_refreshes_listing(self, service: PropertyService, make_payload) -> None:
        await _seed(service, make_payload)
        assert len((await service.list_all()).value) == 1

        await _seed(service, make_payload, title="Second")

        result = await service.list_all()
        assert not result.cached
        assert len(result.value) == 2

    @pytest.mark.asyncio
    async def test_update_refreshes_detail_search_and_owner(
        self, service: PropertyService, make_payload
    ) -> None:
        """After an update no read returns the old value."""
        await _seed(service, make_payload, price=10000)
        filters = FilterSet(city="Mumbai")
        await service.get("PROP0001")
        await service.search(filters)
        await service.list_for_user("u1")
        await service.list_all()

        result = await service.update("PROP0001", PropertyUpdate(price=15000))

        assert result.value["price"] == 15000
        assert not result.degraded
        assert (await service.get("PROP0001")).value["price"] == 15000
        assert (await service.search(filters)).value["properties"][0]["price"] == 15000
        assert (await service.list_for_user("u1")).value[0]["price"] == 15000
        assert (await service.list_all()).value[0]["price"] == 15000

    @pytest.mark.asyncio
    async def test_update_missing_raises_without_invalidating(
        self, service: PropertyService, make_payload
    ) -> None:
        await _seed(service, make_payload)
        await service.list_all()

        with pytest.raises(PropertyNotFoundError):
            await service.update("PROP0404", PropertyUpdate(price=1))

        assert (await service.list_all()).cached

    @pytest.mark.asyncio
    async def test_delete(self, service: PropertyService, make_payload) -> None:
        await _seed(service, make_payload)
        await service.get("PROP0001")

        result = await service.delete("PROP0001")

        assert result.value["propertyId"] == "PROP0001"
        assert "property:detail:PROP0001" in result.patterns
        assert (await service.get("PROP0001")).value is None

    @pytest.mark.asyncio
    async def test_delete_missing_raises(self, service: PropertyService) -> None:
        with pytest.raises(PropertyNotFoundError):
            await service.delete("PROP0404")

    @pytest.mark.asyncio
    async def test_write_with_cache_down(
        self, repository: InMemoryPropertyRepository, down_facade: CacheFacade, make_payload
    ) -> None:
        """The repository write commits and the result carries warnings."""
        service = PropertyService(repository, down_facade)

        result = await service.create(PropertyCreate.model_validate(make_payload()), "u1")

        assert result.value["propertyId"] == "PROP0001"
        assert result.degraded
        assert {w.kind for w in result.warnings} == {CacheErrorKind.INVALIDATION}
        assert await repository.get("PROP0001") is not None


class TestImport:
    """Test bulk import."""

    @pytest.mark.asyncio
    async def test_partial_import(self, service: PropertyService, make_payload) -> None:
        """Invalid rows are reported; valid rows are inserted."""
        await service.list_all()
        rows = [make_payload(), make_payload(price=-5), make_payload(type="Castle")]

        result = await service.import_properties(rows, "importer")
        report = result.value

        assert report.total_records == 3
        assert report.successful_inserts == 1
        assert report.failed_inserts == 2
        assert [e["row"] for e in report.errors] == [2, 3]
        assert report.errors[0]["details"][0]["field"] == "price"
        assert "properties:user:importer" in result.patterns
        assert len((await service.list_all()).value) == 1

    @pytest.mark.asyncio
    async def test_import_report_wire_form(self, service: PropertyService, make_payload) -> None:
        result = await service.import_properties([make_payload(city="Pune")], "importer")
        body = result.value.to_dict()
        assert body["successfulInserts"] == 1
        assert body["insertedProperties"][0]["location"] == "Pune, Maharashtra"

    @pytest.mark.asyncio
    async def test_repository_failure_reported_per_row(
        self, facade: CacheFacade, make_payload
    ) -> None:
        """A row the store rejects does not abort the batch."""

        class FlakyRepository(InMemoryPropertyRepository):
            async def create(self, data, created_by):
                if data.title == "bad":
                    raise RuntimeError("duplicate key")
                return await super().create(data, created_by)

        service = PropertyService(FlakyRepository(), facade)
        rows = [make_payload(), make_payload(title="bad"), make_payload()]

        report = (await service.import_properties(rows, "importer")).value

        assert report.successful_inserts == 2
        assert report.errors == [
            {"row": 2, "error": "Database insertion failed", "details": "duplicate key"}
        ]
