"""Update modes and results shared by the balance and resource ledgers."""

import enum
import math
import uuid
from dataclasses import dataclass

from app.services.errors import InvalidOperationError, InvalidOperationReason


class UpdateType(str, enum.Enum):
    ADD = "Add"
    SUBTRACT = "Subtract"
    SET = "Set"

    @classmethod
    def _missing_(cls, value):
        # "Update" is the older wire name for SET
        if value == "Update":
            return cls.SET
        return None


@dataclass
class BalanceUpdateResult:
    user_id: uuid.UUID
    balance: int
    history_recorded: bool = True


@dataclass
class ResourceUpdateResult:
    user_id: uuid.UUID
    resource_id: int
    quantity: float
    history_recorded: bool = True


def check_amount(amount: float) -> None:
    """Reject amounts no update mode accepts."""
    if isinstance(amount, float) and not math.isfinite(amount):
        raise InvalidOperationError(
            InvalidOperationReason.NON_FINITE_AMOUNT,
            f"Update amount must be a finite number, got {amount}",
        )
    if amount < 0:
        raise InvalidOperationError(
            InvalidOperationReason.NEGATIVE_AMOUNT,
            f"Update amount must not be negative, got {amount}",
        )


def compute_new_value(
    current: float,
    amount: float,
    update_type: UpdateType,
    shortfall_reason: InvalidOperationReason,
    shortfall_message: str,
) -> float:
    """Apply one update to ``current``; raises before anything is written."""
    check_amount(amount)

    if update_type == UpdateType.ADD:
        total = current + amount
        if isinstance(total, float) and not math.isfinite(total):
            raise InvalidOperationError(
                InvalidOperationReason.NON_FINITE_AMOUNT,
                f"Adding {amount} to {current} leaves no finite result",
            )
        return total
    if update_type == UpdateType.SUBTRACT:
        if current < amount:
            raise InvalidOperationError(shortfall_reason, shortfall_message)
        return current - amount
    return amount
