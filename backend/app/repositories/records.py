"""Plain records exchanged between services and repositories."""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass
class UserRecord:
    id: uuid.UUID
    email: str
    user_name: str
    balance: int = 0
    org_id: uuid.UUID | None = None
    is_owner: bool = False
    is_admin: bool = False
    star_citizen_handle: str | None = None
    version: int = 1
    created_at: datetime | None = None
    hashed_password: str | None = field(default=None, repr=False)


@dataclass
class OrganizationRecord:
    id: uuid.UUID
    name: str
    created_at: datetime | None = None


@dataclass
class ResourceRecord:
    id: int | None
    name: str
    code: str
    type: str
    price_buy: float
    price_sell: float
    last_updated: datetime


@dataclass
class UserResourceRecord:
    user_id: uuid.UUID
    resource_id: int
    quantity: float = 0.0
    version: int = 1


@dataclass(frozen=True)
class BalanceSubject:
    """History subject for a user's balance."""
    user_id: uuid.UUID


@dataclass(frozen=True)
class ResourceSubject:
    """History subject for one resource held by a user."""
    user_id: uuid.UUID
    resource_id: int


SubjectKey = BalanceSubject | ResourceSubject


@dataclass
class BalanceHistoryRecord:
    id: int
    user_id: uuid.UUID
    timestamp: date
    balance: int


@dataclass
class ResourceHistoryRecord:
    id: int
    user_id: uuid.UUID
    resource_id: int
    timestamp: date
    quantity: float


HistoryRecord = BalanceHistoryRecord | ResourceHistoryRecord
