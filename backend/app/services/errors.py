"""Ledger error taxonomy, translated to HTTP responses in app.main."""

import enum


class LedgerError(Exception):
    """Base class for errors raised by ledger services."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LedgerError):
    status_code = 404


class InvalidOperationReason(str, enum.Enum):
    NEGATIVE_BALANCE = "NegativeBalance"
    INSUFFICIENT_QUANTITY = "InsufficientQuantity"
    NEGATIVE_AMOUNT = "NegativeAmount"
    NON_FINITE_AMOUNT = "NonFiniteAmount"
    BALANCE_OVERFLOW = "BalanceOverflow"


class InvalidOperationError(LedgerError):
    """The operation was rejected before any state was changed."""

    status_code = 422

    def __init__(self, reason: InvalidOperationReason, message: str):
        super().__init__(message)
        self.reason = reason


class ConcurrencyConflictError(LedgerError):
    """A compare-and-swap write kept losing to concurrent writers."""

    status_code = 409


class ForbiddenError(LedgerError):
    status_code = 403


class ValidationFailure(LedgerError):
    """Field-to-messages map, e.g. from role or claim grants."""

    status_code = 400

    def __init__(self, errors: dict[str, list[str]], message: str = "One or more validation errors occurred."):
        super().__init__(message)
        self.errors = errors
