"""Resource ledger: signed quantity updates to one (user, resource) holding."""

import logging
import uuid

from app.repositories.base import LedgerRepository
from app.repositories.records import ResourceSubject, UserResourceRecord
from app.services.errors import (
    ConcurrencyConflictError,
    InvalidOperationError,
    InvalidOperationReason,
    NotFoundError,
)
from app.services.history import HistorySnapshotter
from app.services.ledger_types import ResourceUpdateResult, UpdateType, check_amount, compute_new_value
from app.utils.clock import Clock, utc_today, utcnow

logger = logging.getLogger(__name__)


class ResourceLedger:
    """
    Applies Add/Subtract/Set updates to resource quantities held by users.

    Holdings must be attached with ``attach_resource`` before they can be
    updated. Updates follow the same two-phase flow as ``BalanceLedger``.
    """

    def __init__(self, repo: LedgerRepository, clock: Clock = utcnow, max_retries: int = 3):
        self.repo = repo
        self.clock = clock
        self.max_retries = max_retries
        self.snapshotter = HistorySnapshotter(repo, clock)

    async def get_user_resource(self, user_id: uuid.UUID, resource_id: int) -> UserResourceRecord:
        user_resource = await self.repo.get_user_resource(user_id, resource_id)
        if user_resource is None:
            logger.warning("UserResource with UserID %s and ResourceID %s not found", user_id, resource_id)
            raise NotFoundError(f"UserResource with UserID {user_id} and ResourceID {resource_id} not found")
        return user_resource

    async def list_user_resources(self, user_id: uuid.UUID) -> list[UserResourceRecord]:
        if await self.repo.get_user(user_id) is None:
            logger.warning("The user with ID %s was not found", user_id)
            raise NotFoundError(f"The user with ID {user_id} was not found")
        user_resources = await self.repo.list_user_resources([user_id])
        logger.info("Found %s UserResources for UserID %s", len(user_resources), user_id)
        return user_resources

    async def attach_resource(
        self, user_id: uuid.UUID, resource_id: int, quantity: float = 0.0
    ) -> UserResourceRecord:
        """Start tracking a resource for a user. Returns the existing holding if already attached."""
        if await self.repo.get_user(user_id) is None:
            raise NotFoundError(f"The user with ID {user_id} was not found")
        if await self.repo.get_resource(resource_id) is None:
            raise NotFoundError(f"Resource with ID {resource_id} not found")
        check_amount(quantity)

        existing = await self.repo.get_user_resource(user_id, resource_id)
        if existing is not None:
            logger.info("Resource %s is already attached to user %s", resource_id, user_id)
            return existing

        user_resource = await self.repo.add_user_resource(
            UserResourceRecord(user_id=user_id, resource_id=resource_id, quantity=quantity)
        )
        await self.repo.commit()
        logger.info("Attached resource %s to user %s with quantity %s", resource_id, user_id, quantity)
        return user_resource

    async def apply_resource_update(
        self, user_id: uuid.UUID, resource_id: int, quantity: float, update_type: UpdateType
    ) -> ResourceUpdateResult:
        new_quantity = await self._write_quantity(user_id, resource_id, quantity, update_type)

        history_recorded = True
        try:
            await self.snapshotter.snapshot(
                ResourceSubject(user_id, resource_id), utc_today(self.clock), new_quantity
            )
        except Exception:
            history_recorded = False
            await self.repo.rollback()
            logger.exception(
                "Quantity of resource %s for user %s updated to %s but the history snapshot failed",
                resource_id, user_id, new_quantity,
            )

        logger.info(
            "Updated resource quantity and history for user %s and resource %s. New quantity: %s",
            user_id, resource_id, new_quantity,
        )
        return ResourceUpdateResult(
            user_id=user_id,
            resource_id=resource_id,
            quantity=new_quantity,
            history_recorded=history_recorded,
        )

    async def _write_quantity(
        self, user_id: uuid.UUID, resource_id: int, quantity: float, update_type: UpdateType
    ) -> float:
        for attempt in range(1, self.max_retries + 1):
            user_resource = await self.get_user_resource(user_id, resource_id)

            try:
                new_quantity = compute_new_value(
                    user_resource.quantity,
                    quantity,
                    update_type,
                    InvalidOperationReason.INSUFFICIENT_QUANTITY,
                    f"Cannot subtract {quantity} from UserResource. Current quantity of UserResource "
                    f"is less than the requested subtract quantity.",
                )
            except InvalidOperationError:
                logger.warning(
                    "Rejected %s of %s for UserResource with UserID %s and ResourceID %s",
                    update_type.value, quantity, user_id, resource_id,
                )
                raise

            if await self.repo.compare_and_set_quantity(
                user_id, resource_id, float(new_quantity), user_resource.version
            ):
                await self.repo.commit()
                return float(new_quantity)

            await self.repo.rollback()
            logger.info(
                "Quantity of resource %s for user %s changed concurrently (attempt %s/%s), retrying",
                resource_id, user_id, attempt, self.max_retries,
            )

        raise ConcurrencyConflictError(
            f"Resource {resource_id} of user {user_id} is being updated concurrently, try again"
        )
