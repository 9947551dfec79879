from uuid import UUID
from datetime import date

from app.schemas.base import CamelModel
from app.schemas.user import UserResponse


class CreateOrganizationRequest(CamelModel):
    created_by: UUID
    organization_name: str


class AddUserToOrganizationRequest(CamelModel):
    user_id: UUID


class OrganizationResponse(CamelModel):
    organization_id: UUID
    name: str


class OrganizationWithUsersResponse(OrganizationResponse):
    users: list[UserResponse]


class OrganizationBalanceResponse(CamelModel):
    organization_id: UUID
    balance: int


class OrganizationBalanceByUserResponse(CamelModel):
    organization_id: UUID
    user_id: UUID
    user_name: str
    balance: int


class OrganizationBalanceHistoryResponse(CamelModel):
    organization_id: UUID
    timestamp: date
    balance: int


class OrganizationResourceResponse(CamelModel):
    organization_id: UUID
    resource_id: int
    quantity: float


class OrganizationResourceByUserResponse(CamelModel):
    organization_id: UUID
    user_id: UUID
    user_name: str
    resource_id: int
    quantity: float


class OrganizationResourceHistoryResponse(CamelModel):
    organization_id: UUID
    resource_id: int
    timestamp: date
    quantity: float
