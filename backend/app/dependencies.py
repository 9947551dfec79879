"""FastAPI dependencies wiring repositories and services per request."""

from functools import lru_cache
from typing import AsyncIterator

from fastapi import Depends

from app.config import Settings, get_settings
from app.db.postgres import get_db
from app.repositories.base import LedgerRepository
from app.repositories.memory import MemoryRepository
from app.repositories.sql import SqlRepository
from app.services.balance_ledger import BalanceLedger
from app.services.catalog import CatalogManager
from app.services.history import HistorySnapshotter
from app.services.organization_aggregator import OrganizationAggregator
from app.services.organization_service import OrganizationService
from app.services.resource_ledger import ResourceLedger


def get_app_settings() -> Settings:
    return get_settings()


@lru_cache
def get_memory_repository() -> MemoryRepository:
    """Process-wide arena used when storage_backend is 'memory'."""
    return MemoryRepository()


async def get_repository(
    settings: Settings = Depends(get_app_settings),
) -> AsyncIterator[LedgerRepository]:
    if settings.storage_backend == "memory":
        yield get_memory_repository()
        return

    async for session in get_db():
        yield SqlRepository(session)


def get_balance_ledger(
    repo: LedgerRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
) -> BalanceLedger:
    return BalanceLedger(repo, max_retries=settings.ledger_max_retries)


def get_resource_ledger(
    repo: LedgerRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
) -> ResourceLedger:
    return ResourceLedger(repo, max_retries=settings.ledger_max_retries)


def get_history(repo: LedgerRepository = Depends(get_repository)) -> HistorySnapshotter:
    return HistorySnapshotter(repo)


def get_organization_service(
    repo: LedgerRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
) -> OrganizationService:
    return OrganizationService(repo, revoke_grants_on_removal=settings.revoke_grants_on_member_removal)


def get_aggregator(repo: LedgerRepository = Depends(get_repository)) -> OrganizationAggregator:
    return OrganizationAggregator(repo)


def get_catalog(repo: LedgerRepository = Depends(get_repository)) -> CatalogManager:
    return CatalogManager(repo)
