"""Repository interfaces the ledger services depend on.

Two implementations exist: ``SqlRepository`` (SQLAlchemy, one AsyncSession per
request) and ``MemoryRepository`` (arena-style dictionaries keyed by id).
Write methods stage changes; services decide when to ``commit``.
"""

import uuid
from datetime import date
from typing import Iterable, Protocol

from app.repositories.records import (
    BalanceHistoryRecord,
    HistoryRecord,
    OrganizationRecord,
    ResourceHistoryRecord,
    ResourceRecord,
    SubjectKey,
    UserRecord,
    UserResourceRecord,
)


class DuplicateSnapshotError(Exception):
    """Another writer inserted the (subject, day) history row first."""


class RoleStore(Protocol):
    async def role_exists(self, name: str) -> bool: ...

    async def create_role(self, name: str) -> None: ...

    async def commit(self) -> None: ...


class IdentityRepository(RoleStore, Protocol):
    async def get_roles(self, user_id: uuid.UUID) -> set[str]: ...

    async def add_roles(self, user_id: uuid.UUID, names: Iterable[str]) -> None: ...

    async def remove_roles(self, user_id: uuid.UUID, names: Iterable[str]) -> None: ...

    async def get_claims(self, user_id: uuid.UUID) -> list[tuple[str, str]]: ...

    async def add_claim(self, user_id: uuid.UUID, claim_type: str, claim_value: str) -> None: ...

    async def remove_claims(self, user_id: uuid.UUID, claim_type: str) -> None: ...


class LedgerRepository(IdentityRepository, Protocol):
    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    # Users
    async def get_user(self, user_id: uuid.UUID) -> UserRecord | None: ...

    async def get_user_by_email(self, email: str) -> UserRecord | None: ...

    async def list_users(self) -> list[UserRecord]: ...

    async def add_user(self, user: UserRecord) -> UserRecord: ...

    async def update_user_profile(
        self,
        user_id: uuid.UUID,
        *,
        email: str | None = None,
        user_name: str | None = None,
        star_citizen_handle: str | None = None,
    ) -> UserRecord | None: ...

    async def delete_user(self, user_id: uuid.UUID) -> bool: ...

    async def compare_and_set_balance(
        self, user_id: uuid.UUID, balance: int, expected_version: int
    ) -> bool: ...

    async def set_membership(
        self,
        user_id: uuid.UUID,
        org_id: uuid.UUID | None,
        *,
        is_owner: bool,
        is_admin: bool,
    ) -> None: ...

    # Organizations
    async def get_organization(self, org_id: uuid.UUID) -> OrganizationRecord | None: ...

    async def list_organizations(self) -> list[OrganizationRecord]: ...

    async def add_organization(self, organization: OrganizationRecord) -> OrganizationRecord: ...

    async def delete_organization(self, org_id: uuid.UUID) -> bool: ...

    async def list_members(self, org_id: uuid.UUID) -> list[UserRecord]: ...

    # Resource catalog
    async def get_resource(self, resource_id: int) -> ResourceRecord | None: ...

    async def get_resource_by_code(self, code: str) -> ResourceRecord | None: ...

    async def list_resources(self) -> list[ResourceRecord]: ...

    async def add_resource(self, resource: ResourceRecord) -> ResourceRecord: ...

    async def update_resource(self, resource: ResourceRecord) -> ResourceRecord: ...

    # User resources
    async def get_user_resource(
        self, user_id: uuid.UUID, resource_id: int
    ) -> UserResourceRecord | None: ...

    async def list_user_resources(self, user_ids: Iterable[uuid.UUID]) -> list[UserResourceRecord]: ...

    async def add_user_resource(self, user_resource: UserResourceRecord) -> UserResourceRecord: ...

    async def compare_and_set_quantity(
        self, user_id: uuid.UUID, resource_id: int, quantity: float, expected_version: int
    ) -> bool: ...

    # History
    async def find_snapshot(self, subject: SubjectKey, day: date) -> HistoryRecord | None: ...

    async def insert_snapshot(self, subject: SubjectKey, day: date, value: float) -> HistoryRecord: ...

    async def update_snapshot(self, subject: SubjectKey, snapshot_id: int, value: float) -> HistoryRecord: ...

    async def list_balance_history(
        self, user_ids: Iterable[uuid.UUID], start: date, end: date
    ) -> list[BalanceHistoryRecord]: ...

    async def list_resource_history(
        self, user_ids: Iterable[uuid.UUID], start: date, end: date
    ) -> list[ResourceHistoryRecord]: ...
