"""Read-only rollups of balances, resources and history across an organization."""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date

from app.repositories.base import LedgerRepository
from app.repositories.records import UserRecord
from app.services.errors import NotFoundError
from app.utils.dates import resolve_date_range

logger = logging.getLogger(__name__)


@dataclass
class OrganizationBalance:
    organization_id: uuid.UUID
    balance: int


@dataclass
class OrganizationBalanceByUser:
    organization_id: uuid.UUID
    user_id: uuid.UUID
    user_name: str
    balance: int


@dataclass
class OrganizationBalanceHistoryPoint:
    organization_id: uuid.UUID
    timestamp: date
    balance: int


@dataclass
class OrganizationResource:
    organization_id: uuid.UUID
    resource_id: int
    quantity: float


@dataclass
class OrganizationResourceByUser:
    organization_id: uuid.UUID
    user_id: uuid.UUID
    user_name: str
    resource_id: int
    quantity: float


@dataclass
class OrganizationResourceHistoryPoint:
    organization_id: uuid.UUID
    resource_id: int
    timestamp: date
    quantity: float


class OrganizationAggregator:
    """
    Rollups over an organization's current members.

    Every query raises ``NotFoundError`` for an unknown organization and
    returns an empty list when there is nothing to aggregate.
    """

    def __init__(self, repo: LedgerRepository):
        self.repo = repo

    async def total_balance(self, org_id: uuid.UUID) -> OrganizationBalance:
        members = await self._members(org_id)
        total = sum(m.balance for m in members)
        logger.info("Retrieved total balance for organization with ID %s. Total balance: %s", org_id, total)
        return OrganizationBalance(organization_id=org_id, balance=total)

    async def balance_by_user(self, org_id: uuid.UUID) -> list[OrganizationBalanceByUser]:
        members = await self._members(org_id)
        return [
            OrganizationBalanceByUser(
                organization_id=org_id, user_id=m.id, user_name=m.user_name, balance=m.balance
            )
            for m in members
        ]

    async def balance_history(
        self, org_id: uuid.UUID, start: date | None = None, end: date | None = None
    ) -> list[OrganizationBalanceHistoryPoint]:
        """One point per day: the sum of all members' balance snapshots for that day."""
        members = await self._members(org_id)
        start, end = resolve_date_range(start, end)
        rows = await self.repo.list_balance_history([m.id for m in members], start, end)

        totals: dict[date, int] = defaultdict(int)
        for row in rows:
            totals[row.timestamp] += row.balance

        if not totals:
            logger.warning(
                "No balance history found for organization %s between %s and %s", org_id, start, end
            )
        return [
            OrganizationBalanceHistoryPoint(organization_id=org_id, timestamp=day, balance=total)
            for day, total in sorted(totals.items())
        ]

    async def resources(self, org_id: uuid.UUID) -> list[OrganizationResource]:
        members = await self._members(org_id)
        rows = await self.repo.list_user_resources([m.id for m in members])

        totals: dict[int, float] = defaultdict(float)
        for row in rows:
            totals[row.resource_id] += row.quantity

        return [
            OrganizationResource(organization_id=org_id, resource_id=resource_id, quantity=quantity)
            for resource_id, quantity in sorted(totals.items())
        ]

    async def resources_by_user(self, org_id: uuid.UUID) -> list[OrganizationResourceByUser]:
        members = await self._members(org_id)
        names = {m.id: m.user_name for m in members}
        rows = await self.repo.list_user_resources(names.keys())

        totals: dict[tuple[uuid.UUID, int], float] = defaultdict(float)
        for row in rows:
            totals[(row.user_id, row.resource_id)] += row.quantity

        return [
            OrganizationResourceByUser(
                organization_id=org_id,
                user_id=user_id,
                user_name=names[user_id],
                resource_id=resource_id,
                quantity=quantity,
            )
            for (user_id, resource_id), quantity in totals.items()
        ]

    async def resource_history(
        self, org_id: uuid.UUID, start: date | None = None, end: date | None = None
    ) -> list[OrganizationResourceHistoryPoint]:
        """One point per (day, resource): quantities summed across members."""
        members = await self._members(org_id)
        start, end = resolve_date_range(start, end)
        rows = await self.repo.list_resource_history([m.id for m in members], start, end)

        totals: dict[tuple[date, int], float] = defaultdict(float)
        for row in rows:
            totals[(row.timestamp, row.resource_id)] += row.quantity

        return [
            OrganizationResourceHistoryPoint(
                organization_id=org_id, resource_id=resource_id, timestamp=day, quantity=quantity
            )
            for (day, resource_id), quantity in sorted(totals.items())
        ]

    async def _members(self, org_id: uuid.UUID) -> list[UserRecord]:
        if await self.repo.get_organization(org_id) is None:
            logger.warning("Organization with ID %s not found.", org_id)
            raise NotFoundError(f"Organization with ID {org_id} not found.")
        return await self.repo.list_members(org_id)
