"""CatalogManager tests"""

import pytest

from app.services.catalog import CatalogManager, ResourceEntry
from app.services.errors import NotFoundError


def iron(price_buy: float = 1.0) -> ResourceEntry:
    return ResourceEntry(name="Iron", code="IRON", type="Metal", price_buy=price_buy, price_sell=2.0)


class TestUpsertResources:

    @pytest.mark.asyncio
    async def test_upsert_matches_by_code(self, repo, clock) -> None:
        """Posting IRON twice keeps one row and refreshes it"""
        catalog = CatalogManager(repo, clock=clock)

        first = await catalog.upsert_resources([iron()])
        clock.advance(minutes=1)
        second = await catalog.upsert_resources([iron(price_buy=3.5)])

        assert len(second) == 1
        assert second[0].id == first[0].id
        assert second[0].price_buy == 3.5
        assert second[0].last_updated > first[0].last_updated

    @pytest.mark.asyncio
    async def test_returns_whole_catalog(self, repo, clock) -> None:
        catalog = CatalogManager(repo, clock=clock)
        await catalog.upsert_resources([iron()])

        result = await catalog.upsert_resources([
            ResourceEntry(name="Gold", code="GOLD", type="Metal", price_buy=5, price_sell=6),
        ])

        assert [r.code for r in result] == ["IRON", "GOLD"]


class TestGetResource:

    @pytest.mark.asyncio
    async def test_found(self, repo, clock) -> None:
        catalog = CatalogManager(repo, clock=clock)
        [created] = await catalog.upsert_resources([iron()])

        assert (await catalog.get_resource(created.id)).code == "IRON"

    @pytest.mark.asyncio
    async def test_not_found(self, repo, clock) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await CatalogManager(repo, clock=clock).get_resource(99)

        assert exc_info.value.message == "Resource with ID: 99 not found"
