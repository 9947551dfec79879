"""Balance ledger: signed updates to a single user's balance."""

import logging
import uuid

from app.repositories.base import LedgerRepository
from app.repositories.records import BalanceSubject
from app.services.errors import (
    ConcurrencyConflictError,
    InvalidOperationError,
    InvalidOperationReason,
    NotFoundError,
)
from app.services.history import HistorySnapshotter
from app.services.ledger_types import BalanceUpdateResult, UpdateType, compute_new_value
from app.utils.clock import Clock, utc_today, utcnow

logger = logging.getLogger(__name__)

# users.balance is a BIGINT column
BALANCE_MAX = 2**63 - 1


class BalanceLedger:
    """
    Applies Add/Subtract/Set updates to user balances.

    An update runs in two phases: the new balance is committed with a
    compare-and-swap on the user's version, then today's history row is
    upserted. A failed second phase is logged and reported on the result;
    the balance is kept and ``HistorySnapshotter.reconcile`` catches the
    history up later.
    """

    def __init__(self, repo: LedgerRepository, clock: Clock = utcnow, max_retries: int = 3):
        self.repo = repo
        self.clock = clock
        self.max_retries = max_retries
        self.snapshotter = HistorySnapshotter(repo, clock)

    async def get_balance(self, user_id: uuid.UUID) -> int:
        user = await self.repo.get_user(user_id)
        if user is None:
            logger.warning("The user with ID %s was not found", user_id)
            raise NotFoundError(f"The user with ID {user_id} was not found")
        return user.balance

    async def apply_balance_update(
        self, user_id: uuid.UUID, amount: int, update_type: UpdateType
    ) -> BalanceUpdateResult:
        new_balance = await self._write_balance(user_id, amount, update_type)

        history_recorded = True
        try:
            await self.snapshotter.snapshot(BalanceSubject(user_id), utc_today(self.clock), new_balance)
        except Exception:
            history_recorded = False
            await self.repo.rollback()
            logger.exception(
                "Balance of user %s updated to %s but the history snapshot failed", user_id, new_balance
            )

        logger.info("Updated balance and balance history for user %s. New balance: %s", user_id, new_balance)
        return BalanceUpdateResult(user_id=user_id, balance=new_balance, history_recorded=history_recorded)

    async def _write_balance(self, user_id: uuid.UUID, amount: int, update_type: UpdateType) -> int:
        for attempt in range(1, self.max_retries + 1):
            user = await self.repo.get_user(user_id)
            if user is None:
                logger.warning("User with ID %s not found.", user_id)
                raise NotFoundError(f"User with ID {user_id} was not found")

            try:
                new_balance = int(compute_new_value(
                    user.balance,
                    amount,
                    update_type,
                    InvalidOperationReason.NEGATIVE_BALANCE,
                    f"Cannot update balance of user {user_id}, because it would result in a negative balance",
                ))
                if new_balance > BALANCE_MAX:
                    raise InvalidOperationError(
                        InvalidOperationReason.BALANCE_OVERFLOW,
                        f"Cannot update balance of user {user_id}, because it would exceed {BALANCE_MAX}",
                    )
            except InvalidOperationError:
                logger.warning("Rejected %s of %s for user %s", update_type.value, amount, user_id)
                raise

            if await self.repo.compare_and_set_balance(user_id, new_balance, user.version):
                await self.repo.commit()
                return new_balance

            await self.repo.rollback()
            logger.info(
                "Balance of user %s changed concurrently (attempt %s/%s), retrying",
                user_id, attempt, self.max_retries,
            )

        raise ConcurrencyConflictError(
            f"Balance of user {user_id} is being updated concurrently, try again"
        )
