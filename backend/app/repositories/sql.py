"""SQLAlchemy-backed repository, one instance per request session."""

import uuid
from datetime import date
from typing import Iterable

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.history import ResourceQuantityHistory, UserBalanceHistory
from app.models.organization import Organization
from app.models.resource import Resource, UserResource
from app.models.role import Role, UserClaim, UserRole
from app.models.user import User
from app.repositories.base import DuplicateSnapshotError
from app.repositories.records import (
    BalanceHistoryRecord,
    BalanceSubject,
    HistoryRecord,
    OrganizationRecord,
    ResourceHistoryRecord,
    ResourceRecord,
    SubjectKey,
    UserRecord,
    UserResourceRecord,
)
from app.services.errors import ValidationFailure


def to_user_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        email=user.email,
        user_name=user.user_name,
        balance=user.balance,
        org_id=user.org_id,
        is_owner=user.is_owner,
        is_admin=user.is_admin,
        star_citizen_handle=user.star_citizen_handle,
        version=user.version,
        created_at=user.created_at,
        hashed_password=user.hashed_password,
    )


def to_resource_record(resource: Resource) -> ResourceRecord:
    return ResourceRecord(
        id=resource.id,
        name=resource.name,
        code=resource.code,
        type=resource.type,
        price_buy=resource.price_buy,
        price_sell=resource.price_sell,
        last_updated=resource.last_updated,
    )


def to_user_resource_record(user_resource: UserResource) -> UserResourceRecord:
    return UserResourceRecord(
        user_id=user_resource.user_id,
        resource_id=user_resource.resource_id,
        quantity=user_resource.quantity,
        version=user_resource.version,
    )


def to_history_record(row: UserBalanceHistory | ResourceQuantityHistory) -> HistoryRecord:
    if isinstance(row, UserBalanceHistory):
        return BalanceHistoryRecord(
            id=row.id, user_id=row.user_id, timestamp=row.timestamp, balance=row.balance
        )
    return ResourceHistoryRecord(
        id=row.id,
        user_id=row.user_id,
        resource_id=row.resource_id,
        timestamp=row.timestamp,
        quantity=row.quantity,
    )


class SqlRepository:
    """Repository over a single AsyncSession. Writes are flushed, not committed."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    # ============== Roles and claims ==============

    async def role_exists(self, name: str) -> bool:
        result = await self.db.execute(select(Role.id).where(Role.name == name))
        return result.scalar_one_or_none() is not None

    async def create_role(self, name: str) -> None:
        self.db.add(Role(name=name))
        await self.db.flush()

    async def get_roles(self, user_id: uuid.UUID) -> set[str]:
        result = await self.db.execute(
            select(Role.name)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id)
        )
        return set(result.scalars().all())

    async def add_roles(self, user_id: uuid.UUID, names: Iterable[str]) -> None:
        names = list(names)
        result = await self.db.execute(select(Role).where(Role.name.in_(names)))
        roles = {role.name: role for role in result.scalars().all()}
        missing = [name for name in names if name not in roles]
        if missing:
            raise ValidationFailure(
                {"InvalidRoleName": [f"Role {name} does not exist." for name in missing]}
            )
        current = await self.get_roles(user_id)
        for name, role in roles.items():
            if name not in current:
                self.db.add(UserRole(user_id=user_id, role_id=role.id))
        await self.db.flush()

    async def remove_roles(self, user_id: uuid.UUID, names: Iterable[str]) -> None:
        role_ids = select(Role.id).where(Role.name.in_(list(names)))
        await self.db.execute(
            delete(UserRole).where(UserRole.user_id == user_id, UserRole.role_id.in_(role_ids))
        )

    async def get_claims(self, user_id: uuid.UUID) -> list[tuple[str, str]]:
        result = await self.db.execute(
            select(UserClaim).where(UserClaim.user_id == user_id).order_by(UserClaim.id)
        )
        return [(c.claim_type, c.claim_value) for c in result.scalars().all()]

    async def add_claim(self, user_id: uuid.UUID, claim_type: str, claim_value: str) -> None:
        if (claim_type, claim_value) in await self.get_claims(user_id):
            return
        self.db.add(UserClaim(user_id=user_id, claim_type=claim_type, claim_value=claim_value))
        await self.db.flush()

    async def remove_claims(self, user_id: uuid.UUID, claim_type: str) -> None:
        await self.db.execute(
            delete(UserClaim).where(UserClaim.user_id == user_id, UserClaim.claim_type == claim_type)
        )

    # ============== Users ==============

    async def get_user(self, user_id: uuid.UUID) -> UserRecord | None:
        result = await self.db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        return to_user_record(user) if user else None

    async def get_user_by_email(self, email: str) -> UserRecord | None:
        result = await self.db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        return to_user_record(user) if user else None

    async def list_users(self) -> list[UserRecord]:
        result = await self.db.execute(select(User).order_by(User.created_at))
        return [to_user_record(u) for u in result.scalars().all()]

    async def add_user(self, user: UserRecord) -> UserRecord:
        row = User(
            id=user.id,
            email=user.email,
            user_name=user.user_name,
            hashed_password=user.hashed_password,
            star_citizen_handle=user.star_citizen_handle,
            balance=user.balance,
            version=user.version,
            org_id=user.org_id,
            is_owner=user.is_owner,
            is_admin=user.is_admin,
        )
        self.db.add(row)
        await self.db.flush()
        return to_user_record(row)

    async def update_user_profile(
        self,
        user_id: uuid.UUID,
        *,
        email: str | None = None,
        user_name: str | None = None,
        star_citizen_handle: str | None = None,
    ) -> UserRecord | None:
        user = await self.db.get(User, user_id)
        if user is None:
            return None
        if email is not None:
            user.email = email
        if user_name is not None:
            user.user_name = user_name
        if star_citizen_handle is not None:
            user.star_citizen_handle = star_citizen_handle
        await self.db.flush()
        return to_user_record(user)

    async def delete_user(self, user_id: uuid.UUID) -> bool:
        user = await self.db.get(User, user_id)
        if user is None:
            return False
        # Explicit cleanup so deletion does not depend on backend FK cascades
        await self.db.execute(delete(UserBalanceHistory).where(UserBalanceHistory.user_id == user_id))
        await self.db.execute(
            delete(ResourceQuantityHistory).where(ResourceQuantityHistory.user_id == user_id)
        )
        await self.db.execute(delete(UserResource).where(UserResource.user_id == user_id))
        await self.db.execute(delete(UserClaim).where(UserClaim.user_id == user_id))
        await self.db.execute(delete(UserRole).where(UserRole.user_id == user_id))
        await self.db.delete(user)
        await self.db.flush()
        return True

    async def compare_and_set_balance(
        self, user_id: uuid.UUID, balance: int, expected_version: int
    ) -> bool:
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id, User.version == expected_version)
            .values(balance=balance, version=User.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_membership(
        self,
        user_id: uuid.UUID,
        org_id: uuid.UUID | None,
        *,
        is_owner: bool,
        is_admin: bool,
    ) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(org_id=org_id, is_owner=is_owner, is_admin=is_admin)
            .execution_options(synchronize_session=False)
        )

    # ============== Organizations ==============

    async def get_organization(self, org_id: uuid.UUID) -> OrganizationRecord | None:
        organization = await self.db.get(Organization, org_id)
        if organization is None:
            return None
        return OrganizationRecord(id=organization.id, name=organization.name, created_at=organization.created_at)

    async def list_organizations(self) -> list[OrganizationRecord]:
        result = await self.db.execute(select(Organization).order_by(Organization.name))
        return [
            OrganizationRecord(id=o.id, name=o.name, created_at=o.created_at)
            for o in result.scalars().all()
        ]

    async def add_organization(self, organization: OrganizationRecord) -> OrganizationRecord:
        row = Organization(id=organization.id, name=organization.name)
        self.db.add(row)
        await self.db.flush()
        return OrganizationRecord(id=row.id, name=row.name, created_at=row.created_at)

    async def delete_organization(self, org_id: uuid.UUID) -> bool:
        organization = await self.db.get(Organization, org_id)
        if organization is None:
            return False
        await self.db.execute(
            update(User)
            .where(User.org_id == org_id)
            .values(org_id=None, is_owner=False, is_admin=False)
            .execution_options(synchronize_session=False)
        )
        await self.db.delete(organization)
        await self.db.flush()
        return True

    async def list_members(self, org_id: uuid.UUID) -> list[UserRecord]:
        result = await self.db.execute(
            select(User)
            .where(User.org_id == org_id)
            .order_by(User.created_at)
            .execution_options(populate_existing=True)
        )
        return [to_user_record(u) for u in result.scalars().all()]

    # ============== Resource catalog ==============

    async def get_resource(self, resource_id: int) -> ResourceRecord | None:
        resource = await self.db.get(Resource, resource_id)
        return to_resource_record(resource) if resource else None

    async def get_resource_by_code(self, code: str) -> ResourceRecord | None:
        result = await self.db.execute(select(Resource).where(Resource.code == code))
        resource = result.scalar_one_or_none()
        return to_resource_record(resource) if resource else None

    async def list_resources(self) -> list[ResourceRecord]:
        result = await self.db.execute(select(Resource).order_by(Resource.id))
        return [to_resource_record(r) for r in result.scalars().all()]

    async def add_resource(self, resource: ResourceRecord) -> ResourceRecord:
        row = Resource(
            name=resource.name,
            code=resource.code,
            type=resource.type,
            price_buy=resource.price_buy,
            price_sell=resource.price_sell,
            last_updated=resource.last_updated,
        )
        self.db.add(row)
        await self.db.flush()
        return to_resource_record(row)

    async def update_resource(self, resource: ResourceRecord) -> ResourceRecord:
        row = await self.db.get(Resource, resource.id)
        row.name = resource.name
        row.code = resource.code
        row.type = resource.type
        row.price_buy = resource.price_buy
        row.price_sell = resource.price_sell
        row.last_updated = resource.last_updated
        await self.db.flush()
        return to_resource_record(row)

    # ============== User resources ==============

    async def get_user_resource(
        self, user_id: uuid.UUID, resource_id: int
    ) -> UserResourceRecord | None:
        result = await self.db.execute(
            select(UserResource)
            .where(UserResource.user_id == user_id, UserResource.resource_id == resource_id)
            .execution_options(populate_existing=True)
        )
        user_resource = result.scalar_one_or_none()
        return to_user_resource_record(user_resource) if user_resource else None

    async def list_user_resources(self, user_ids: Iterable[uuid.UUID]) -> list[UserResourceRecord]:
        result = await self.db.execute(
            select(UserResource)
            .where(UserResource.user_id.in_(list(user_ids)))
            .order_by(UserResource.user_id, UserResource.resource_id)
            .execution_options(populate_existing=True)
        )
        return [to_user_resource_record(ur) for ur in result.scalars().all()]

    async def add_user_resource(self, user_resource: UserResourceRecord) -> UserResourceRecord:
        row = UserResource(
            user_id=user_resource.user_id,
            resource_id=user_resource.resource_id,
            quantity=user_resource.quantity,
            version=user_resource.version,
        )
        self.db.add(row)
        await self.db.flush()
        return to_user_resource_record(row)

    async def compare_and_set_quantity(
        self, user_id: uuid.UUID, resource_id: int, quantity: float, expected_version: int
    ) -> bool:
        result = await self.db.execute(
            update(UserResource)
            .where(
                UserResource.user_id == user_id,
                UserResource.resource_id == resource_id,
                UserResource.version == expected_version,
            )
            .values(quantity=quantity, version=UserResource.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ============== History ==============

    def _history_query(self, subject: SubjectKey):
        if isinstance(subject, BalanceSubject):
            return select(UserBalanceHistory).where(UserBalanceHistory.user_id == subject.user_id)
        return select(ResourceQuantityHistory).where(
            ResourceQuantityHistory.user_id == subject.user_id,
            ResourceQuantityHistory.resource_id == subject.resource_id,
        )

    async def find_snapshot(self, subject: SubjectKey, day: date) -> HistoryRecord | None:
        model = UserBalanceHistory if isinstance(subject, BalanceSubject) else ResourceQuantityHistory
        result = await self.db.execute(
            self._history_query(subject)
            .where(model.timestamp == day)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return to_history_record(row) if row else None

    async def insert_snapshot(self, subject: SubjectKey, day: date, value: float) -> HistoryRecord:
        if isinstance(subject, BalanceSubject):
            row = UserBalanceHistory(user_id=subject.user_id, timestamp=day, balance=int(value))
        else:
            row = ResourceQuantityHistory(
                user_id=subject.user_id,
                resource_id=subject.resource_id,
                timestamp=day,
                quantity=float(value),
            )
        self.db.add(row)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            # Discards the failed insert together with anything else staged
            await self.db.rollback()
            raise DuplicateSnapshotError(f"History row for {subject} on {day} already exists") from exc
        return to_history_record(row)

    async def update_snapshot(self, subject: SubjectKey, snapshot_id: int, value: float) -> HistoryRecord:
        if isinstance(subject, BalanceSubject):
            row = await self.db.get(UserBalanceHistory, snapshot_id)
            row.balance = int(value)
        else:
            row = await self.db.get(ResourceQuantityHistory, snapshot_id)
            row.quantity = float(value)
        await self.db.flush()
        return to_history_record(row)

    async def list_balance_history(
        self, user_ids: Iterable[uuid.UUID], start: date, end: date
    ) -> list[BalanceHistoryRecord]:
        result = await self.db.execute(
            select(UserBalanceHistory)
            .where(
                UserBalanceHistory.user_id.in_(list(user_ids)),
                UserBalanceHistory.timestamp >= start,
                UserBalanceHistory.timestamp <= end,
            )
            .order_by(UserBalanceHistory.timestamp, UserBalanceHistory.id)
        )
        return [to_history_record(row) for row in result.scalars().all()]

    async def list_resource_history(
        self, user_ids: Iterable[uuid.UUID], start: date, end: date
    ) -> list[ResourceHistoryRecord]:
        result = await self.db.execute(
            select(ResourceQuantityHistory)
            .where(
                ResourceQuantityHistory.user_id.in_(list(user_ids)),
                ResourceQuantityHistory.timestamp >= start,
                ResourceQuantityHistory.timestamp <= end,
            )
            .order_by(
                ResourceQuantityHistory.timestamp,
                ResourceQuantityHistory.resource_id,
                ResourceQuantityHistory.id,
            )
        )
        return [to_history_record(row) for row in result.scalars().all()]
