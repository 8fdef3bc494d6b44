"""Tests for the read-through / write-through cache facade."""

from __future__ import annotations

import pytest

from listings.cache.errors import CacheErrorKind, CacheOutcome
from listings.cache.facade import CacheFacade, MutationOutcome, get_cache_facade
from listings.cache.filters import FilterSet
from listings.cache.invalidation import WriteKind, WriteOperation
from listings.cache.keys import CacheCategory
from listings.cache.redis import RedisCache


class Loader:
    """Counts calls and returns a fixed value."""

    def __init__(self, value: object) -> None:
        self.value = value
        self.calls = 0

    async def __call__(self) -> object:
        self.calls += 1
        return self.value


class ExplodingStore(RedisCache):
    """Store whose pattern deletes raise instead of degrading."""

    async def delete_pattern(self, pattern: str) -> CacheOutcome:
        raise RuntimeError("pattern delete crashed")


class TestReadThrough:
    """Test cached reads."""

    @pytest.mark.asyncio
    async def test_reordered_filters_hit_same_entry(self, facade: CacheFacade) -> None:
        """Equivalent searches built in different orders run the loader once."""
        loader = Loader({"properties": [], "pagination": {"totalResults": 0}})
        first = FilterSet.from_query({"city": "Pune", "minPrice": "100"})
        second = FilterSet.from_query({"minPrice": "100", "city": "Pune"})

        miss = await facade.read_through(CacheCategory.SEARCH_RESULTS, first, loader)
        hit = await facade.read_through(CacheCategory.SEARCH_RESULTS, second, loader)

        assert loader.calls == 1
        assert not miss.cached
        assert hit.cached
        assert hit.value == miss.value
        assert hit.key == miss.key

    @pytest.mark.asyncio
    async def test_entry_gets_category_ttl(self, facade: CacheFacade) -> None:
        result = await facade.read_through(CacheCategory.FILTER_OPTIONS, None, Loader({}))
        remaining = await facade.store.ttl(result.key)
        assert 3590 <= remaining <= 3600

    @pytest.mark.asyncio
    async def test_loader_error_propagates_and_is_not_cached(self, facade: CacheFacade) -> None:
        """A failing loader raises unchanged and leaves no entry."""

        async def broken() -> object:
            raise ConnectionRefusedError("database down")

        with pytest.raises(ConnectionRefusedError):
            await facade.read_through(CacheCategory.ALL_PROPERTIES, None, broken)

        assert await facade.store.keys("properties:*") == []

        loader = Loader([{"propertyId": "PROP0001"}])
        result = await facade.read_through(CacheCategory.ALL_PROPERTIES, None, loader)
        assert loader.calls == 1
        assert not result.cached

    @pytest.mark.asyncio
    async def test_none_is_not_cached(self, facade: CacheFacade) -> None:
        loader = Loader(None)
        for _ in range(2):
            result = await facade.read_through(CacheCategory.PROPERTY_DETAIL, "PROP0404", loader)
            assert result.value is None
            assert not result.cached
        assert loader.calls == 2

    @pytest.mark.asyncio
    async def test_backend_down_serves_from_loader(self, down_facade: CacheFacade) -> None:
        """An unreachable cache turns reads into loader calls with warnings."""
        loader = Loader([{"propertyId": "PROP0001"}])

        result = await down_facade.read_through(CacheCategory.ALL_PROPERTIES, None, loader)

        assert result.value == [{"propertyId": "PROP0001"}]
        assert not result.cached
        kinds = {w.kind for w in result.warnings}
        assert kinds == {CacheErrorKind.BACKEND_UNAVAILABLE}
        assert {w.operation for w in result.warnings} == {"get", "set"}

    @pytest.mark.asyncio
    async def test_disabled_cache_bypasses_store(self, store: RedisCache) -> None:
        facade = CacheFacade(store=store, enabled=False)
        loader = Loader(["x"])

        await facade.read_through(CacheCategory.ALL_PROPERTIES, None, loader)
        await facade.read_through(CacheCategory.ALL_PROPERTIES, None, loader)

        assert loader.calls == 2
        assert await store.keys("properties:*") == []

    @pytest.mark.asyncio
    async def test_bad_params_raise(self, facade: CacheFacade) -> None:
        loader = Loader([])
        with pytest.raises(ValueError):
            await facade.read_through(CacheCategory.USER_PROPERTIES, "", loader)
        assert loader.calls == 0


class TestWriteThrough:
    """Test invalidating writes."""

    async def _warm(self, facade: CacheFacade) -> None:
        await facade.read_through(CacheCategory.ALL_PROPERTIES, None, Loader(["all"]))
        await facade.read_through(CacheCategory.FILTER_OPTIONS, None, Loader({"types": []}))
        await facade.read_through(CacheCategory.SEARCH_RESULTS, FilterSet(city="Pune"), Loader({}))
        await facade.read_through(CacheCategory.PROPERTY_DETAIL, "PROP0001", Loader({"t": 1}))
        await facade.read_through(CacheCategory.PROPERTY_DETAIL, "PROP0002", Loader({"t": 2}))
        await facade.read_through(CacheCategory.USER_PROPERTIES, "u1", Loader(["mine"]))
        await facade.read_through(CacheCategory.USER_PROPERTIES, "u2", Loader(["theirs"]))

    @pytest.mark.asyncio
    async def test_update_purges_stale_entries(self, facade: CacheFacade) -> None:
        """An update leaves only unrelated details and other owners cached."""
        await self._warm(facade)

        async def mutate() -> MutationOutcome[dict[str, str]]:
            return MutationOutcome({"propertyId": "PROP0001"}, "PROP0001", "u1")

        result = await facade.write_through(
            WriteOperation(WriteKind.UPDATE, property_id="PROP0001"), mutate
        )

        assert result.value == {"propertyId": "PROP0001"}
        assert not result.degraded
        assert result.invalidated == 5
        assert sorted(await facade.store.keys("prop*")) == [
            "properties:user:u2",
            "property:detail:PROP0002",
        ]

    @pytest.mark.asyncio
    async def test_create_purges_every_detail(self, facade: CacheFacade) -> None:
        """Without an id from the mutation, every detail entry goes."""
        await self._warm(facade)

        async def mutate() -> str:
            return "created"

        result = await facade.write_through(WriteOperation(WriteKind.CREATE, owner_id="u2"), mutate)

        assert result.value == "created"
        assert await facade.store.keys("prop*") == ["properties:user:u1"]

    @pytest.mark.asyncio
    async def test_failed_mutation_leaves_cache_untouched(self, facade: CacheFacade) -> None:
        await self._warm(facade)
        before = sorted(await facade.store.keys("prop*"))

        async def mutate() -> str:
            raise LookupError("no such property")

        with pytest.raises(LookupError):
            await facade.write_through(
                WriteOperation(WriteKind.DELETE, property_id="PROP0001"), mutate
            )

        assert sorted(await facade.store.keys("prop*")) == before

    @pytest.mark.asyncio
    async def test_invalidation_failure_is_a_warning(self, fake_redis) -> None:
        """A crashing purge never fails the committed write."""
        facade = CacheFacade(store=ExplodingStore(client=fake_redis), enabled=True)

        async def mutate() -> str:
            return "saved"

        result = await facade.write_through(
            WriteOperation(WriteKind.UPDATE, property_id="PROP0001", owner_id="u1"), mutate
        )

        assert result.value == "saved"
        assert result.degraded
        assert len(result.warnings) == len(result.patterns) == 5
        assert all(w.kind == CacheErrorKind.INVALIDATION for w in result.warnings)
        assert "RuntimeError: pattern delete crashed" in result.warnings[0].detail

    @pytest.mark.asyncio
    async def test_backend_down_write_succeeds(self, down_facade: CacheFacade) -> None:
        async def mutate() -> str:
            return "saved"

        result = await down_facade.write_through(
            WriteOperation(WriteKind.DELETE, property_id="PROP0001"), mutate
        )

        assert result.value == "saved"
        assert result.invalidated == 0
        assert {w.kind for w in result.warnings} == {CacheErrorKind.INVALIDATION}
        assert {w.key for w in result.warnings} == set(result.patterns)


class TestFacadeSingleton:
    """Test the process-wide facade."""

    def test_get_cache_facade_is_shared(self) -> None:
        assert get_cache_facade() is get_cache_facade()
