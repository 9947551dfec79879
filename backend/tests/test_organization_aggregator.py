"""OrganizationAggregator tests"""

import uuid
from datetime import date

import pytest
import pytest_asyncio

from app.repositories.records import BalanceSubject, ResourceSubject, UserResourceRecord
from app.services.errors import NotFoundError
from app.services.history import HistorySnapshotter
from app.services.organization_aggregator import OrganizationAggregator


@pytest_asyncio.fixture
async def org(repo, make_organization, make_user):
    """Organization with two members (100 and 250) and one outsider"""
    org = await make_organization()
    for email, balance in [("a@starledger.io", 100), ("b@starledger.io", 250)]:
        user = await make_user(email, balance=balance)
        await repo.set_membership(user.id, org.id, is_owner=False, is_admin=False)
    await make_user("outsider@starledger.io", balance=1000)
    return org


async def member_ids(repo) -> list[uuid.UUID]:
    return [(await repo.get_user_by_email(email)).id for email in ("a@starledger.io", "b@starledger.io")]


class TestBalances:

    @pytest.mark.asyncio
    async def test_total_balance(self, repo, org) -> None:
        result = await OrganizationAggregator(repo).total_balance(org.id)

        assert result.balance == 350

    @pytest.mark.asyncio
    async def test_balance_by_user(self, repo, org) -> None:
        rows = await OrganizationAggregator(repo).balance_by_user(org.id)

        assert sorted((r.user_name, r.balance) for r in rows) == [("a", 100), ("b", 250)]

    @pytest.mark.asyncio
    async def test_empty_organization(self, repo, make_organization) -> None:
        org = await make_organization("Empty")
        aggregator = OrganizationAggregator(repo)

        assert (await aggregator.total_balance(org.id)).balance == 0
        assert await aggregator.balance_by_user(org.id) == []
        assert await aggregator.balance_history(org.id) == []

    @pytest.mark.asyncio
    async def test_unknown_organization(self, repo) -> None:
        aggregator = OrganizationAggregator(repo)

        with pytest.raises(NotFoundError):
            await aggregator.total_balance(uuid.uuid4())
        with pytest.raises(NotFoundError):
            await aggregator.resources_by_user(uuid.uuid4())


class TestBalanceHistory:

    @pytest.mark.asyncio
    async def test_sums_per_day(self, repo, org, clock) -> None:
        history = HistorySnapshotter(repo, clock)
        a, b = await member_ids(repo)
        await history.snapshot(BalanceSubject(a), date(2024, 5, 1), 100)
        await history.snapshot(BalanceSubject(b), date(2024, 5, 1), 250)
        await history.snapshot(BalanceSubject(a), date(2024, 5, 2), 120)

        points = await OrganizationAggregator(repo).balance_history(org.id)

        assert [(p.timestamp, p.balance) for p in points] == [
            (date(2024, 5, 1), 350),
            (date(2024, 5, 2), 120),
        ]

    @pytest.mark.asyncio
    async def test_start_date_only(self, repo, org, clock) -> None:
        """An open end keeps everything from the start date on"""
        history = HistorySnapshotter(repo, clock)
        a, _ = await member_ids(repo)
        await history.snapshot(BalanceSubject(a), date(2024, 4, 1), 10)
        await history.snapshot(BalanceSubject(a), date(2024, 5, 1), 20)
        await history.snapshot(BalanceSubject(a), date(2030, 1, 1), 30)

        points = await OrganizationAggregator(repo).balance_history(org.id, start=date(2024, 5, 1))

        assert [p.balance for p in points] == [20, 30]

    @pytest.mark.asyncio
    async def test_outsiders_are_ignored(self, repo, org, clock) -> None:
        history = HistorySnapshotter(repo, clock)
        outsider = await repo.get_user_by_email("outsider@starledger.io")
        await history.snapshot(BalanceSubject(outsider.id), date(2024, 5, 1), 1000)

        assert await OrganizationAggregator(repo).balance_history(org.id) == []


class TestResources:

    @pytest.mark.asyncio
    async def test_sums_per_resource(self, repo, org, make_resource) -> None:
        iron = await make_resource("IRON")
        gold = await make_resource("GOLD")
        a, b = await member_ids(repo)
        await repo.add_user_resource(UserResourceRecord(a, iron.id, 5))
        await repo.add_user_resource(UserResourceRecord(b, iron.id, 2.5))
        await repo.add_user_resource(UserResourceRecord(b, gold.id, 1))
        aggregator = OrganizationAggregator(repo)

        totals = await aggregator.resources(org.id)
        by_user = await aggregator.resources_by_user(org.id)

        assert [(r.resource_id, r.quantity) for r in totals] == [(iron.id, 7.5), (gold.id, 1)]
        assert sorted((r.user_name, r.resource_id, r.quantity) for r in by_user) == [
            ("a", iron.id, 5),
            ("b", iron.id, 2.5),
            ("b", gold.id, 1),
        ]

    @pytest.mark.asyncio
    async def test_resource_history_per_day_and_resource(self, repo, org, make_resource, clock) -> None:
        iron = await make_resource("IRON")
        history = HistorySnapshotter(repo, clock)
        a, b = await member_ids(repo)
        await history.snapshot(ResourceSubject(a, iron.id), date(2024, 5, 1), 5)
        await history.snapshot(ResourceSubject(b, iron.id), date(2024, 5, 1), 3)
        await history.snapshot(ResourceSubject(b, iron.id), date(2024, 5, 3), 4)

        points = await OrganizationAggregator(repo).resource_history(
            org.id, start=date(2024, 5, 1), end=date(2024, 5, 2)
        )

        assert [(p.timestamp, p.resource_id, p.quantity) for p in points] == [
            (date(2024, 5, 1), iron.id, 8),
        ]

    @pytest.mark.asyncio
    async def test_resource_history_start_date_only(self, repo, org, make_resource, clock) -> None:
        """An open end keeps everything from the start date on"""
        iron = await make_resource("IRON")
        history = HistorySnapshotter(repo, clock)
        a, _ = await member_ids(repo)
        await history.snapshot(ResourceSubject(a, iron.id), date(2024, 4, 1), 1)
        await history.snapshot(ResourceSubject(a, iron.id), date(2024, 5, 1), 2)
        await history.snapshot(ResourceSubject(a, iron.id), date(2030, 1, 1), 3)

        points = await OrganizationAggregator(repo).resource_history(org.id, start=date(2024, 5, 1))

        assert [(p.timestamp, p.quantity) for p in points] == [
            (date(2024, 5, 1), 2),
            (date(2030, 1, 1), 3),
        ]
