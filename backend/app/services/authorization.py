"""Claim and role based authorization policies."""

import logging
import uuid
from dataclasses import dataclass, field

from app.repositories.base import RoleStore
from app.services.errors import ForbiddenError

logger = logging.getLogger(__name__)

ORGANIZATION_CLAIM = "Organization"

OWNER_ROLE = "Owner"
ADMIN_ROLE = "Admin"
DEVELOPER_ROLE = "Developer"

SYSTEM_ROLES = (OWNER_ROLE, ADMIN_ROLE, DEVELOPER_ROLE)

ORGANIZATION_ADMIN_POLICY = "OrganizationAdmin"
ORGANIZATION_OWNER_POLICY = "OrganizationOwner"
DEVELOPER_POLICY = "Developer"


@dataclass(frozen=True)
class Policy:
    """Claims (by type, any value) and roles a principal must all hold."""
    name: str
    required_claims: frozenset[str] = frozenset()
    required_roles: frozenset[str] = frozenset()


POLICIES: dict[str, Policy] = {
    ORGANIZATION_ADMIN_POLICY: Policy(
        ORGANIZATION_ADMIN_POLICY,
        required_claims=frozenset({ORGANIZATION_CLAIM}),
        required_roles=frozenset({ADMIN_ROLE}),
    ),
    ORGANIZATION_OWNER_POLICY: Policy(
        ORGANIZATION_OWNER_POLICY,
        required_claims=frozenset({ORGANIZATION_CLAIM}),
        required_roles=frozenset({OWNER_ROLE}),
    ),
    DEVELOPER_POLICY: Policy(
        DEVELOPER_POLICY,
        required_roles=frozenset({DEVELOPER_ROLE}),
    ),
}


@dataclass(frozen=True)
class Principal:
    """Authenticated caller: the claims and roles it can present."""
    user_id: uuid.UUID
    claims: tuple[tuple[str, str], ...] = ()
    roles: frozenset[str] = field(default_factory=frozenset)

    def has_claim(self, claim_type: str) -> bool:
        return any(t == claim_type for t, _ in self.claims)

    def claims_dict(self) -> dict[str, str]:
        return {t: v for t, v in self.claims}


def evaluate(policy_name: str, principal: Principal | None) -> bool:
    """Return True if the principal satisfies the named policy."""
    policy = POLICIES[policy_name]
    if principal is None:
        return False
    if not all(principal.has_claim(c) for c in policy.required_claims):
        return False
    return policy.required_roles <= principal.roles


def authorize(policy_name: str, principal: Principal | None) -> Principal:
    if not evaluate(policy_name, principal):
        logger.warning(
            "User %s does not satisfy policy %s",
            principal.user_id if principal else None, policy_name,
        )
        raise ForbiddenError(f"Policy {policy_name} is not satisfied")
    return principal


async def ensure_roles(role_store: RoleStore, names: tuple[str, ...] = SYSTEM_ROLES) -> list[str]:
    """Create any missing roles. Returns the names created; run once at startup."""
    created = []
    for name in names:
        if not await role_store.role_exists(name):
            await role_store.create_role(name)
            created.append(name)
    await role_store.commit()
    if created:
        logger.info("Created roles: %s", ", ".join(created))
    return created
