"""
Shared pytest fixtures

Services run against the in-memory repository with a fixed clock.
"""

import uuid
from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from app.repositories.memory import MemoryRepository
from app.repositories.records import OrganizationRecord, ResourceRecord, UserRecord
from app.services.authorization import ensure_roles


class FixedClock:
    """Clock that only moves when told to"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 5, 1, 12, 0, 0))


@pytest_asyncio.fixture
async def repo() -> MemoryRepository:
    """Memory repository with the system roles seeded"""
    repo = MemoryRepository()
    await ensure_roles(repo)
    return repo


@pytest.fixture
def make_user(repo: MemoryRepository):
    """Factory adding a user straight to the repository"""
    async def _make_user(email: str, balance: int = 0, **kwargs) -> UserRecord:
        return await repo.add_user(UserRecord(
            id=uuid.uuid4(),
            email=email,
            user_name=email.split("@")[0],
            balance=balance,
            **kwargs,
        ))
    return _make_user


@pytest.fixture
def make_organization(repo: MemoryRepository):
    async def _make_organization(name: str = "Red Wing") -> OrganizationRecord:
        return await repo.add_organization(OrganizationRecord(id=uuid.uuid4(), name=name))
    return _make_organization


@pytest.fixture
def make_resource(repo: MemoryRepository, clock: FixedClock):
    async def _make_resource(code: str, name: str | None = None) -> ResourceRecord:
        return await repo.add_resource(ResourceRecord(
            id=None,
            name=name or code.title(),
            code=code,
            type="Metal",
            price_buy=1.0,
            price_sell=2.0,
            last_updated=clock(),
        ))
    return _make_resource
