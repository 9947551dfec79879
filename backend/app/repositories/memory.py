"""Arena-style in-memory repository.

Entities live in dictionaries keyed by id. Organization membership is a
back-reference (``UserRecord.org_id``) plus an explicit index from org id to
member ids; both are only ever changed together, through ``set_membership``,
``delete_user`` and ``delete_organization``.

Writes are applied immediately, so ``commit`` and ``rollback`` are no-ops.
Records handed out are copies; mutating them does not touch the arena.
"""

import uuid
from dataclasses import replace
from datetime import date
from typing import Iterable

from app.repositories.base import DuplicateSnapshotError
from app.repositories.records import (
    BalanceHistoryRecord,
    BalanceSubject,
    HistoryRecord,
    OrganizationRecord,
    ResourceHistoryRecord,
    ResourceRecord,
    ResourceSubject,
    SubjectKey,
    UserRecord,
    UserResourceRecord,
)
from app.services.errors import ValidationFailure
from app.utils.clock import utcnow


class MemoryRepository:
    def __init__(self):
        self.users: dict[uuid.UUID, UserRecord] = {}
        self.organizations: dict[uuid.UUID, OrganizationRecord] = {}
        self.members: dict[uuid.UUID, set[uuid.UUID]] = {}
        self.resources: dict[int, ResourceRecord] = {}
        self.user_resources: dict[tuple[uuid.UUID, int], UserResourceRecord] = {}
        self.snapshots: dict[tuple[SubjectKey, date], HistoryRecord] = {}
        self.roles: set[str] = set()
        self.user_roles: dict[uuid.UUID, set[str]] = {}
        self.user_claims: dict[uuid.UUID, list[tuple[str, str]]] = {}
        self._next_resource_id = 1
        self._next_snapshot_id = 1

    async def commit(self) -> None:
        pass

    async def rollback(self) -> None:
        pass

    # ============== Roles and claims ==============

    async def role_exists(self, name: str) -> bool:
        return name in self.roles

    async def create_role(self, name: str) -> None:
        self.roles.add(name)

    async def get_roles(self, user_id: uuid.UUID) -> set[str]:
        return set(self.user_roles.get(user_id, set()))

    async def add_roles(self, user_id: uuid.UUID, names: Iterable[str]) -> None:
        names = list(names)
        missing = [name for name in names if name not in self.roles]
        if missing:
            raise ValidationFailure(
                {"InvalidRoleName": [f"Role {name} does not exist." for name in missing]}
            )
        self.user_roles.setdefault(user_id, set()).update(names)

    async def remove_roles(self, user_id: uuid.UUID, names: Iterable[str]) -> None:
        self.user_roles.get(user_id, set()).difference_update(names)

    async def get_claims(self, user_id: uuid.UUID) -> list[tuple[str, str]]:
        return list(self.user_claims.get(user_id, []))

    async def add_claim(self, user_id: uuid.UUID, claim_type: str, claim_value: str) -> None:
        claims = self.user_claims.setdefault(user_id, [])
        if (claim_type, claim_value) not in claims:
            claims.append((claim_type, claim_value))

    async def remove_claims(self, user_id: uuid.UUID, claim_type: str) -> None:
        claims = self.user_claims.get(user_id, [])
        self.user_claims[user_id] = [c for c in claims if c[0] != claim_type]

    # ============== Users ==============

    async def get_user(self, user_id: uuid.UUID) -> UserRecord | None:
        user = self.users.get(user_id)
        return replace(user) if user else None

    async def get_user_by_email(self, email: str) -> UserRecord | None:
        for user in self.users.values():
            if user.email == email:
                return replace(user)
        return None

    async def list_users(self) -> list[UserRecord]:
        return [replace(u) for u in self.users.values()]

    async def add_user(self, user: UserRecord) -> UserRecord:
        if user.org_id is not None and user.org_id not in self.organizations:
            raise ValueError(f"Organization {user.org_id} does not exist")
        stored = replace(user, created_at=user.created_at or utcnow())
        self.users[stored.id] = stored
        if stored.org_id is not None:
            self.members[stored.org_id].add(stored.id)
        return replace(stored)

    async def update_user_profile(
        self,
        user_id: uuid.UUID,
        *,
        email: str | None = None,
        user_name: str | None = None,
        star_citizen_handle: str | None = None,
    ) -> UserRecord | None:
        user = self.users.get(user_id)
        if user is None:
            return None
        if email is not None:
            user.email = email
        if user_name is not None:
            user.user_name = user_name
        if star_citizen_handle is not None:
            user.star_citizen_handle = star_citizen_handle
        return replace(user)

    async def delete_user(self, user_id: uuid.UUID) -> bool:
        user = self.users.pop(user_id, None)
        if user is None:
            return False
        if user.org_id is not None:
            self.members[user.org_id].discard(user_id)
        for key in [k for k in self.user_resources if k[0] == user_id]:
            del self.user_resources[key]
        for key in [k for k in self.snapshots if k[0].user_id == user_id]:
            del self.snapshots[key]
        self.user_roles.pop(user_id, None)
        self.user_claims.pop(user_id, None)
        return True

    async def compare_and_set_balance(
        self, user_id: uuid.UUID, balance: int, expected_version: int
    ) -> bool:
        user = self.users.get(user_id)
        if user is None or user.version != expected_version:
            return False
        user.balance = balance
        user.version += 1
        return True

    async def set_membership(
        self,
        user_id: uuid.UUID,
        org_id: uuid.UUID | None,
        *,
        is_owner: bool,
        is_admin: bool,
    ) -> None:
        user = self.users[user_id]
        if org_id is not None and org_id not in self.organizations:
            raise ValueError(f"Organization {org_id} does not exist")
        if user.org_id is not None:
            self.members[user.org_id].discard(user_id)
        user.org_id = org_id
        user.is_owner = is_owner
        user.is_admin = is_admin
        if org_id is not None:
            self.members[org_id].add(user_id)
        self._check_membership(user_id)

    def _check_membership(self, user_id: uuid.UUID) -> None:
        user = self.users[user_id]
        listed_in = [org_id for org_id, ids in self.members.items() if user_id in ids]
        expected = [user.org_id] if user.org_id is not None else []
        if listed_in != expected:
            raise RuntimeError(f"Membership index out of sync for user {user_id}")

    # ============== Organizations ==============

    async def get_organization(self, org_id: uuid.UUID) -> OrganizationRecord | None:
        organization = self.organizations.get(org_id)
        return replace(organization) if organization else None

    async def list_organizations(self) -> list[OrganizationRecord]:
        return [replace(o) for o in self.organizations.values()]

    async def add_organization(self, organization: OrganizationRecord) -> OrganizationRecord:
        stored = replace(organization, created_at=organization.created_at or utcnow())
        self.organizations[stored.id] = stored
        self.members.setdefault(stored.id, set())
        return replace(stored)

    async def delete_organization(self, org_id: uuid.UUID) -> bool:
        if org_id not in self.organizations:
            return False
        for user_id in self.members.pop(org_id):
            user = self.users[user_id]
            user.org_id = None
            user.is_owner = False
            user.is_admin = False
        del self.organizations[org_id]
        return True

    async def list_members(self, org_id: uuid.UUID) -> list[UserRecord]:
        ids = self.members.get(org_id, set())
        members = [replace(self.users[user_id]) for user_id in ids]
        return sorted(members, key=lambda u: u.created_at)

    # ============== Resource catalog ==============

    async def get_resource(self, resource_id: int) -> ResourceRecord | None:
        resource = self.resources.get(resource_id)
        return replace(resource) if resource else None

    async def get_resource_by_code(self, code: str) -> ResourceRecord | None:
        for resource in self.resources.values():
            if resource.code == code:
                return replace(resource)
        return None

    async def list_resources(self) -> list[ResourceRecord]:
        return [replace(r) for r in sorted(self.resources.values(), key=lambda r: r.id)]

    async def add_resource(self, resource: ResourceRecord) -> ResourceRecord:
        if await self.get_resource_by_code(resource.code) is not None:
            raise ValueError(f"Resource code {resource.code} already exists")
        stored = replace(resource, id=self._next_resource_id)
        self._next_resource_id += 1
        self.resources[stored.id] = stored
        return replace(stored)

    async def update_resource(self, resource: ResourceRecord) -> ResourceRecord:
        self.resources[resource.id] = replace(resource)
        return replace(resource)

    # ============== User resources ==============

    async def get_user_resource(
        self, user_id: uuid.UUID, resource_id: int
    ) -> UserResourceRecord | None:
        user_resource = self.user_resources.get((user_id, resource_id))
        return replace(user_resource) if user_resource else None

    async def list_user_resources(self, user_ids: Iterable[uuid.UUID]) -> list[UserResourceRecord]:
        wanted = set(user_ids)
        rows = [replace(ur) for key, ur in self.user_resources.items() if key[0] in wanted]
        return sorted(rows, key=lambda ur: (str(ur.user_id), ur.resource_id))

    async def add_user_resource(self, user_resource: UserResourceRecord) -> UserResourceRecord:
        key = (user_resource.user_id, user_resource.resource_id)
        if user_resource.user_id not in self.users or user_resource.resource_id not in self.resources:
            raise ValueError(f"Unknown user or resource for {key}")
        self.user_resources[key] = replace(user_resource)
        return replace(user_resource)

    async def compare_and_set_quantity(
        self, user_id: uuid.UUID, resource_id: int, quantity: float, expected_version: int
    ) -> bool:
        user_resource = self.user_resources.get((user_id, resource_id))
        if user_resource is None or user_resource.version != expected_version:
            return False
        user_resource.quantity = quantity
        user_resource.version += 1
        return True

    # ============== History ==============

    async def find_snapshot(self, subject: SubjectKey, day: date) -> HistoryRecord | None:
        snapshot = self.snapshots.get((subject, day))
        return replace(snapshot) if snapshot else None

    async def insert_snapshot(self, subject: SubjectKey, day: date, value: float) -> HistoryRecord:
        if (subject, day) in self.snapshots:
            raise DuplicateSnapshotError(f"History row for {subject} on {day} already exists")
        snapshot_id = self._next_snapshot_id
        self._next_snapshot_id += 1
        if isinstance(subject, BalanceSubject):
            snapshot = BalanceHistoryRecord(
                id=snapshot_id, user_id=subject.user_id, timestamp=day, balance=int(value)
            )
        else:
            snapshot = ResourceHistoryRecord(
                id=snapshot_id,
                user_id=subject.user_id,
                resource_id=subject.resource_id,
                timestamp=day,
                quantity=float(value),
            )
        self.snapshots[(subject, day)] = snapshot
        return replace(snapshot)

    async def update_snapshot(self, subject: SubjectKey, snapshot_id: int, value: float) -> HistoryRecord:
        for (key_subject, _), snapshot in self.snapshots.items():
            if key_subject == subject and snapshot.id == snapshot_id:
                if isinstance(snapshot, BalanceHistoryRecord):
                    snapshot.balance = int(value)
                else:
                    snapshot.quantity = float(value)
                return replace(snapshot)
        raise KeyError(f"History row {snapshot_id} not found for {subject}")

    async def list_balance_history(
        self, user_ids: Iterable[uuid.UUID], start: date, end: date
    ) -> list[BalanceHistoryRecord]:
        wanted = set(user_ids)
        rows = [
            replace(s) for (subject, day), s in self.snapshots.items()
            if isinstance(subject, BalanceSubject)
            and subject.user_id in wanted
            and start <= day <= end
        ]
        return sorted(rows, key=lambda r: (r.timestamp, r.id))

    async def list_resource_history(
        self, user_ids: Iterable[uuid.UUID], start: date, end: date
    ) -> list[ResourceHistoryRecord]:
        wanted = set(user_ids)
        rows = [
            replace(s) for (subject, day), s in self.snapshots.items()
            if isinstance(subject, ResourceSubject)
            and subject.user_id in wanted
            and start <= day <= end
        ]
        return sorted(rows, key=lambda r: (r.timestamp, r.resource_id, r.id))
