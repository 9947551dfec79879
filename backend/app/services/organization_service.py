"""Organization lifecycle and membership management."""

import logging
import uuid
from dataclasses import dataclass

from app.repositories.base import LedgerRepository
from app.repositories.records import OrganizationRecord, UserRecord
from app.services.authorization import ADMIN_ROLE, ORGANIZATION_CLAIM, OWNER_ROLE
from app.services.errors import NotFoundError, ValidationFailure

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 100


@dataclass
class OrganizationWithUsers:
    organization: OrganizationRecord
    users: list[UserRecord]


class OrganizationService:
    """
    Creates and deletes organizations and moves users in and out of them.

    Membership is kept consistent in two places: the user's ``org_id`` and
    the role/claim grants held by the identity subsystem. Grants are left in
    place when a member is removed unless ``revoke_grants_on_removal`` is set.
    """

    def __init__(self, repo: LedgerRepository, revoke_grants_on_removal: bool = False):
        self.repo = repo
        self.revoke_grants_on_removal = revoke_grants_on_removal

    async def list_organizations(self) -> list[OrganizationRecord]:
        return await self.repo.list_organizations()

    async def get_organization(self, org_id: uuid.UUID) -> OrganizationWithUsers:
        organization = await self._require_organization(org_id)
        users = await self.repo.list_members(org_id)
        logger.info("Organization with ID %s returned", org_id)
        return OrganizationWithUsers(organization=organization, users=users)

    async def create_organization(self, created_by: uuid.UUID, name: str) -> OrganizationRecord:
        """Create an organization; the founding user becomes its owner and admin."""
        name = name.strip()
        if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
            raise ValidationFailure({
                "OrganizationName": [
                    f"Organization name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters."
                ]
            })

        founder = await self.repo.get_user(created_by)
        if founder is None:
            logger.warning("User with ID %s was not found", created_by)
            raise NotFoundError("User was not found")

        organization = OrganizationRecord(id=uuid.uuid4(), name=name)
        try:
            organization = await self.repo.add_organization(organization)
            await self.repo.add_claim(created_by, ORGANIZATION_CLAIM, str(organization.id))
            await self.repo.add_roles(created_by, [OWNER_ROLE, ADMIN_ROLE])
            await self.repo.set_membership(created_by, organization.id, is_owner=True, is_admin=True)
        except ValidationFailure as exc:
            await self.repo.rollback()
            logger.error("Granting ownership to user %s resulted in errors: %s", created_by, exc.errors)
            raise
        await self.repo.commit()

        logger.info("Created new organization with ID %s and Name %s", organization.id, organization.name)
        return organization

    async def delete_organization(self, org_id: uuid.UUID) -> None:
        """Delete an organization. Members are detached, never deleted."""
        if not await self.repo.delete_organization(org_id):
            logger.warning("Organization with ID %s not found.", org_id)
            raise NotFoundError(f"Organization with ID {org_id} not found.")
        await self.repo.commit()
        logger.info("Deleted organization with ID %s.", org_id)

    async def add_member(self, org_id: uuid.UUID, user_id: uuid.UUID) -> OrganizationWithUsers:
        """Add a user to the organization. Re-adding an existing member is a no-op."""
        user = await self._require_user(user_id)
        await self._require_organization(org_id)

        if user.org_id != org_id:
            await self.repo.set_membership(user_id, org_id, is_owner=False, is_admin=False)
        logger.info("User with ID %s added to Organization with ID %s.", user_id, org_id)

        claims = await self.repo.get_claims(user_id)
        if any(claim_type == ORGANIZATION_CLAIM for claim_type, _ in claims):
            logger.info("Organization claim already exists for user %s", user_id)
        else:
            await self.repo.add_claim(user_id, ORGANIZATION_CLAIM, str(org_id))
        await self.repo.commit()

        return await self.get_organization(org_id)

    async def promote_to_admin(self, org_id: uuid.UUID, user_id: uuid.UUID) -> OrganizationWithUsers:
        """Grant the Admin role within the organization. Promoting an admin again is a no-op."""
        user = await self._require_user(user_id)
        await self._require_organization(org_id)

        roles = await self.repo.get_roles(user_id)
        if ADMIN_ROLE in roles and user.org_id == org_id and user.is_admin:
            logger.info("User with ID %s already has Admin privileges in Organization with ID %s.", user_id, org_id)
            return await self.get_organization(org_id)

        try:
            await self.repo.add_roles(user_id, [ADMIN_ROLE])
        except ValidationFailure as exc:
            await self.repo.rollback()
            logger.error("Updating roles of user %s resulted in errors: %s", user_id, exc.errors)
            raise
        is_owner = user.is_owner if user.org_id == org_id else False
        await self.repo.set_membership(user_id, org_id, is_owner=is_owner, is_admin=True)
        await self.repo.commit()

        logger.info("User with ID %s received Admin privileges in Organization with ID %s.", user_id, org_id)
        return await self.get_organization(org_id)

    async def remove_member(self, org_id: uuid.UUID, user_id: uuid.UUID) -> None:
        await self._require_organization(org_id)
        user = await self._require_user(user_id)
        if user.org_id != org_id:
            logger.warning("User with ID %s is not a member of Organization with ID %s.", user_id, org_id)
            raise NotFoundError(f"User with ID {user_id} is not a member of organization {org_id}.")

        await self.repo.set_membership(user_id, None, is_owner=False, is_admin=False)
        if self.revoke_grants_on_removal:
            await self.repo.remove_claims(user_id, ORGANIZATION_CLAIM)
            await self.repo.remove_roles(user_id, [OWNER_ROLE, ADMIN_ROLE])
            logger.info("Revoked organization grants of user %s", user_id)
        await self.repo.commit()

        logger.info("User with ID %s has been removed from the organization.", user_id)

    async def update_claims(self, user_id: uuid.UUID, claims: dict[str, str]) -> dict[str, str]:
        """Add claims whose type the user does not hold yet; returns all claims."""
        await self._require_user(user_id)
        existing = {claim_type for claim_type, _ in await self.repo.get_claims(user_id)}
        for claim_type, claim_value in claims.items():
            if claim_type in existing:
                logger.info("Claim %s already exists for user %s", claim_type, user_id)
                continue
            await self.repo.add_claim(user_id, claim_type, claim_value)
        await self.repo.commit()
        return {t: v for t, v in await self.repo.get_claims(user_id)}

    async def _require_user(self, user_id: uuid.UUID) -> UserRecord:
        user = await self.repo.get_user(user_id)
        if user is None:
            logger.warning("User with ID %s not found.", user_id)
            raise NotFoundError(f"User with ID {user_id} not found.")
        return user

    async def _require_organization(self, org_id: uuid.UUID) -> OrganizationRecord:
        organization = await self.repo.get_organization(org_id)
        if organization is None:
            logger.warning("Organization with ID %s not found.", org_id)
            raise NotFoundError(f"Organization with ID {org_id} not found.")
        return organization
