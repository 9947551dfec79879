from app.models.organization import Organization
from app.models.role import Role, UserRole, UserClaim
from app.models.user import User
from app.models.resource import Resource, UserResource
from app.models.history import UserBalanceHistory, ResourceQuantityHistory

__all__ = [
    "Organization",
    "Role",
    "UserRole",
    "UserClaim",
    "User",
    "Resource",
    "UserResource",
    "UserBalanceHistory",
    "ResourceQuantityHistory",
]
