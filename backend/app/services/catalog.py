"""Global resource catalog, upserted by resource code."""

import logging
from dataclasses import dataclass

from app.repositories.base import LedgerRepository
from app.repositories.records import ResourceRecord
from app.services.errors import NotFoundError
from app.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)


@dataclass
class ResourceEntry:
    name: str
    code: str
    type: str
    price_buy: float
    price_sell: float


class CatalogManager:
    def __init__(self, repo: LedgerRepository, clock: Clock = utcnow):
        self.repo = repo
        self.clock = clock

    async def list_resources(self) -> list[ResourceRecord]:
        return await self.repo.list_resources()

    async def get_resource(self, resource_id: int) -> ResourceRecord:
        resource = await self.repo.get_resource(resource_id)
        if resource is None:
            logger.warning("No resource with ID %s found", resource_id)
            raise NotFoundError(f"Resource with ID: {resource_id} not found")
        return resource

    async def upsert_resources(self, entries: list[ResourceEntry]) -> list[ResourceRecord]:
        """
        Insert or update catalog entries matched by code, never by id.

        Every touched entry gets ``last_updated`` set to now. Returns the
        whole catalog after the update.
        """
        now = self.clock()
        for entry in entries:
            existing = await self.repo.get_resource_by_code(entry.code)
            if existing is not None:
                logger.info("Resource with code %s already exists, updating", entry.code)
                existing.name = entry.name
                existing.type = entry.type
                existing.price_buy = entry.price_buy
                existing.price_sell = entry.price_sell
                existing.last_updated = now
                await self.repo.update_resource(existing)
            else:
                logger.info("Resource with code %s is being created", entry.code)
                await self.repo.add_resource(ResourceRecord(
                    id=None,
                    name=entry.name,
                    code=entry.code,
                    type=entry.type,
                    price_buy=entry.price_buy,
                    price_sell=entry.price_sell,
                    last_updated=now,
                ))
        await self.repo.commit()
        return await self.repo.list_resources()
