"""SqlRepository tests against an in-memory SQLite database"""

import uuid
from datetime import date

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.db.postgres import Base
from app.repositories.base import DuplicateSnapshotError
from app.repositories.records import (
    BalanceSubject,
    OrganizationRecord,
    ResourceRecord,
    ResourceSubject,
    UserRecord,
    UserResourceRecord,
)
from app.repositories.sql import SqlRepository
from app.services.authorization import ensure_roles
from app.services.balance_ledger import BalanceLedger
from app.services.errors import InvalidOperationError, InvalidOperationReason, ValidationFailure
from app.services.ledger_types import UpdateType
from app.services.organization_aggregator import OrganizationAggregator
from app.services.organization_service import OrganizationService


@pytest_asyncio.fixture
async def session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest_asyncio.fixture
async def sql_repo(session) -> SqlRepository:
    repo = SqlRepository(session)
    await ensure_roles(repo)
    return repo


async def add_user(repo: SqlRepository, email: str, balance: int = 0) -> UserRecord:
    user = await repo.add_user(UserRecord(
        id=uuid.uuid4(), email=email, user_name=email.split("@")[0], balance=balance
    ))
    await repo.commit()
    return user


async def add_resource(repo: SqlRepository, code: str, clock) -> ResourceRecord:
    resource = await repo.add_resource(ResourceRecord(
        id=None, name=code.title(), code=code, type="Metal", price_buy=1, price_sell=2, last_updated=clock()
    ))
    await repo.commit()
    return resource


class TestCompareAndSet:

    @pytest.mark.asyncio
    async def test_stale_version_is_rejected(self, sql_repo) -> None:
        user = await add_user(sql_repo, "a@starledger.io", 100)

        assert await sql_repo.compare_and_set_balance(user.id, 150, user.version)
        assert not await sql_repo.compare_and_set_balance(user.id, 999, user.version)
        await sql_repo.commit()

        stored = await sql_repo.get_user(user.id)
        assert (stored.balance, stored.version) == (150, user.version + 1)

    @pytest.mark.asyncio
    async def test_quantity(self, sql_repo, clock) -> None:
        user = await add_user(sql_repo, "a@starledger.io")
        iron = await add_resource(sql_repo, "IRON", clock)
        await sql_repo.add_user_resource(UserResourceRecord(user.id, iron.id, 1.5))
        await sql_repo.commit()

        assert await sql_repo.compare_and_set_quantity(user.id, iron.id, 4.0, 1)
        assert not await sql_repo.compare_and_set_quantity(user.id, iron.id, 8.0, 1)

        assert (await sql_repo.get_user_resource(user.id, iron.id)).quantity == 4.0


class TestSnapshots:

    @pytest.mark.asyncio
    async def test_duplicate_insert(self, sql_repo) -> None:
        user = await add_user(sql_repo, "a@starledger.io")
        subject = BalanceSubject(user.id)
        await sql_repo.insert_snapshot(subject, date(2024, 5, 1), 10)
        await sql_repo.commit()

        with pytest.raises(DuplicateSnapshotError):
            await sql_repo.insert_snapshot(subject, date(2024, 5, 1), 20)

        assert (await sql_repo.find_snapshot(subject, date(2024, 5, 1))).balance == 10

    @pytest.mark.asyncio
    async def test_resource_history_range(self, sql_repo, clock) -> None:
        user = await add_user(sql_repo, "a@starledger.io")
        iron = await add_resource(sql_repo, "IRON", clock)
        subject = ResourceSubject(user.id, iron.id)
        for day in (date(2024, 4, 30), date(2024, 5, 1), date(2024, 5, 2)):
            await sql_repo.insert_snapshot(subject, day, day.day)
        await sql_repo.commit()

        rows = await sql_repo.list_resource_history([user.id], date(2024, 5, 1), date.max)

        assert [r.quantity for r in rows] == [1, 2]


class TestLedgerFlow:

    @pytest.mark.asyncio
    async def test_balance_update_and_history(self, sql_repo, clock) -> None:
        user = await add_user(sql_repo, "a@starledger.io", 100)
        ledger = BalanceLedger(sql_repo, clock=clock)

        await ledger.apply_balance_update(user.id, 50, UpdateType.ADD)
        result = await ledger.apply_balance_update(user.id, 20, UpdateType.SUBTRACT)
        with pytest.raises(InvalidOperationError):
            await ledger.apply_balance_update(user.id, 1000, UpdateType.SUBTRACT)

        assert result.balance == 130
        assert await ledger.get_balance(user.id) == 130
        rows = await sql_repo.list_balance_history([user.id], date.min, date.max)
        assert [(r.timestamp, r.balance) for r in rows] == [(date(2024, 5, 1), 130)]

    @pytest.mark.asyncio
    async def test_overflow_rejected_before_write(self, sql_repo, clock) -> None:
        user = await add_user(sql_repo, "a@starledger.io", 10)
        ledger = BalanceLedger(sql_repo, clock=clock)

        with pytest.raises(InvalidOperationError) as exc_info:
            await ledger.apply_balance_update(user.id, 2**63, UpdateType.ADD)
        result = await ledger.apply_balance_update(user.id, 5, UpdateType.ADD)

        assert exc_info.value.reason == InvalidOperationReason.BALANCE_OVERFLOW
        assert result.balance == 15


class TestIdentity:

    @pytest.mark.asyncio
    async def test_unknown_role(self, sql_repo) -> None:
        user = await add_user(sql_repo, "a@starledger.io")

        with pytest.raises(ValidationFailure) as exc_info:
            await sql_repo.add_roles(user.id, ["Emperor"])

        assert "InvalidRoleName" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_roles_and_claims(self, sql_repo) -> None:
        user = await add_user(sql_repo, "a@starledger.io")

        await sql_repo.add_roles(user.id, ["Admin", "Owner"])
        await sql_repo.add_claim(user.id, "Organization", "abc")
        await sql_repo.add_claim(user.id, "Organization", "abc")
        await sql_repo.remove_roles(user.id, ["Owner"])
        await sql_repo.commit()

        assert await sql_repo.get_roles(user.id) == {"Admin"}
        assert await sql_repo.get_claims(user.id) == [("Organization", "abc")]


class TestOrganizations:

    @pytest.mark.asyncio
    async def test_membership_and_aggregate(self, sql_repo) -> None:
        founder = await add_user(sql_repo, "founder@starledger.io", 100)
        pilot = await add_user(sql_repo, "pilot@starledger.io", 250)
        service = OrganizationService(sql_repo)

        org = await service.create_organization(founder.id, "Red Wing")
        await service.add_member(org.id, pilot.id)

        total = await OrganizationAggregator(sql_repo).total_balance(org.id)
        assert total.balance == 350

    @pytest.mark.asyncio
    async def test_delete_detaches_members(self, sql_repo) -> None:
        founder = await add_user(sql_repo, "founder@starledger.io", 100)
        org = await sql_repo.add_organization(OrganizationRecord(id=uuid.uuid4(), name="Red Wing"))
        await sql_repo.set_membership(founder.id, org.id, is_owner=True, is_admin=True)
        await sql_repo.commit()

        assert await sql_repo.delete_organization(org.id)
        await sql_repo.commit()

        user = await sql_repo.get_user(founder.id)
        assert (user.org_id, user.is_owner, user.is_admin) == (None, False, False)
        assert await sql_repo.get_organization(org.id) is None


class TestDeleteUser:

    @pytest.mark.asyncio
    async def test_removes_dependent_rows(self, sql_repo, clock) -> None:
        user = await add_user(sql_repo, "a@starledger.io", 100)
        iron = await add_resource(sql_repo, "IRON", clock)
        await sql_repo.add_user_resource(UserResourceRecord(user.id, iron.id, 1))
        await sql_repo.insert_snapshot(BalanceSubject(user.id), date(2024, 5, 1), 100)
        await sql_repo.add_claim(user.id, "Organization", "abc")
        await sql_repo.commit()

        assert await sql_repo.delete_user(user.id)
        await sql_repo.commit()

        assert await sql_repo.get_user(user.id) is None
        assert await sql_repo.list_user_resources([user.id]) == []
        assert await sql_repo.list_balance_history([user.id], date.min, date.max) == []
        assert await sql_repo.get_claims(user.id) == []
        assert await sql_repo.get_resource(iron.id) is not None
