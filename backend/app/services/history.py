"""Daily watermark history: one snapshot row per (subject, calendar day)."""

import logging
import uuid
from datetime import date

from app.repositories.base import DuplicateSnapshotError, LedgerRepository
from app.repositories.records import (
    BalanceHistoryRecord,
    BalanceSubject,
    HistoryRecord,
    ResourceHistoryRecord,
    SubjectKey,
)
from app.services.errors import NotFoundError
from app.utils.clock import Clock, utc_today, utcnow
from app.utils.dates import resolve_date_range

logger = logging.getLogger(__name__)


class HistorySnapshotter:
    """Upserts history rows shared by the balance and resource ledgers."""

    def __init__(self, repo: LedgerRepository, clock: Clock = utcnow):
        self.repo = repo
        self.clock = clock

    async def snapshot(self, subject: SubjectKey, day: date, value: float) -> HistoryRecord:
        """
        Record ``value`` as the subject's watermark for ``day``.

        Repeated calls on the same day overwrite the existing row rather than
        adding another one. Commits on success.
        """
        existing = await self.repo.find_snapshot(subject, day)
        if existing is None:
            try:
                record = await self.repo.insert_snapshot(subject, day, value)
            except DuplicateSnapshotError:
                # Lost the insert race; the other writer's row gets our value
                logger.info("History row for %s on %s appeared concurrently, overwriting", subject, day)
                existing = await self.repo.find_snapshot(subject, day)
                record = await self.repo.update_snapshot(subject, existing.id, value)
        else:
            record = await self.repo.update_snapshot(subject, existing.id, value)
        await self.repo.commit()
        return record

    async def reconcile(self, subject: SubjectKey, day: date | None = None) -> HistoryRecord:
        """
        Re-snapshot the subject's current ledger value.

        Recovery path for ledger updates whose snapshot step failed. Safe to
        call any number of times.
        """
        day = day or utc_today(self.clock)
        if isinstance(subject, BalanceSubject):
            user = await self.repo.get_user(subject.user_id)
            if user is None:
                raise NotFoundError(f"User with ID {subject.user_id} was not found")
            value = user.balance
        else:
            user_resource = await self.repo.get_user_resource(subject.user_id, subject.resource_id)
            if user_resource is None:
                raise NotFoundError(
                    f"UserResource with UserID {subject.user_id} and ResourceID {subject.resource_id} not found"
                )
            value = user_resource.quantity

        record = await self.snapshot(subject, day, value)
        logger.info("Reconciled history for %s on %s to %s", subject, day, value)
        return record

    async def balance_history(
        self, user_id: uuid.UUID, start: date | None = None, end: date | None = None
    ) -> list[BalanceHistoryRecord]:
        if await self.repo.get_user(user_id) is None:
            logger.warning("The user with ID %s was not found", user_id)
            raise NotFoundError(f"The user with ID {user_id} was not found")
        start, end = resolve_date_range(start, end)
        return await self.repo.list_balance_history([user_id], start, end)

    async def resource_history(
        self, user_id: uuid.UUID, start: date | None = None, end: date | None = None
    ) -> list[ResourceHistoryRecord]:
        if await self.repo.get_user(user_id) is None:
            logger.warning("The user with ID %s was not found", user_id)
            raise NotFoundError(f"The user with ID {user_id} was not found")
        start, end = resolve_date_range(start, end)
        return await self.repo.list_resource_history([user_id], start, end)
