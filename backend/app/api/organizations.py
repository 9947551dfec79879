"""Organization management and organization-wide aggregates."""

import logging
from datetime import date
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Response, status

from app.dependencies import get_aggregator, get_organization_service
from app.schemas.organization import (
    AddUserToOrganizationRequest,
    CreateOrganizationRequest,
    OrganizationBalanceByUserResponse,
    OrganizationBalanceHistoryResponse,
    OrganizationBalanceResponse,
    OrganizationResourceByUserResponse,
    OrganizationResourceHistoryResponse,
    OrganizationResourceResponse,
    OrganizationResponse,
    OrganizationWithUsersResponse,
)
from app.schemas.user import UserResponse
from app.security import get_current_principal, require_policy
from app.services.authorization import (
    ORGANIZATION_ADMIN_POLICY,
    ORGANIZATION_OWNER_POLICY,
    Principal,
)
from app.services.organization_aggregator import OrganizationAggregator
from app.services.organization_service import OrganizationService, OrganizationWithUsers

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_principal)])


def build_organization_response(result: OrganizationWithUsers) -> OrganizationWithUsersResponse:
    return OrganizationWithUsersResponse(
        organization_id=result.organization.id,
        name=result.organization.name,
        users=[
            UserResponse(user_id=u.id, email=u.email, star_citizen_handle=u.star_citizen_handle)
            for u in result.users
        ],
    )


# ============== Organizations ==============

@router.get("", response_model=list[OrganizationResponse])
async def list_organizations(organizations: OrganizationService = Depends(get_organization_service)):
    return [
        OrganizationResponse(organization_id=o.id, name=o.name)
        for o in await organizations.list_organizations()
    ]


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    data: CreateOrganizationRequest,
    organizations: OrganizationService = Depends(get_organization_service),
):
    organization = await organizations.create_organization(data.created_by, data.organization_name)
    return OrganizationResponse(organization_id=organization.id, name=organization.name)


@router.get("/{organization_id}", response_model=OrganizationWithUsersResponse)
async def get_organization(
    organization_id: UUID,
    organizations: OrganizationService = Depends(get_organization_service),
):
    return build_organization_response(await organizations.get_organization(organization_id))


@router.delete("/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_organization(
    organization_id: UUID,
    principal: Principal = Depends(require_policy(ORGANIZATION_OWNER_POLICY)),
    organizations: OrganizationService = Depends(get_organization_service),
):
    await organizations.delete_organization(organization_id)


# ============== Membership ==============

@router.post("/{organization_id}/user", response_model=OrganizationWithUsersResponse)
async def add_user_to_organization(
    organization_id: UUID,
    data: AddUserToOrganizationRequest,
    principal: Principal = Depends(require_policy(ORGANIZATION_ADMIN_POLICY)),
    organizations: OrganizationService = Depends(get_organization_service),
):
    return build_organization_response(await organizations.add_member(organization_id, data.user_id))


@router.post("/{organization_id}/user/admin", response_model=OrganizationWithUsersResponse)
async def add_admin_to_organization(
    organization_id: UUID,
    data: AddUserToOrganizationRequest,
    principal: Principal = Depends(require_policy(ORGANIZATION_OWNER_POLICY)),
    organizations: OrganizationService = Depends(get_organization_service),
):
    return build_organization_response(await organizations.promote_to_admin(organization_id, data.user_id))


@router.delete("/{organization_id}/user/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_user_from_organization(
    organization_id: UUID,
    user_id: UUID,
    principal: Principal = Depends(require_policy(ORGANIZATION_ADMIN_POLICY)),
    organizations: OrganizationService = Depends(get_organization_service),
):
    await organizations.remove_member(organization_id, user_id)


# ============== Aggregates ==============
# Empty results are answered with 204 No Content.

@router.get("/{organization_id}/balance", response_model=OrganizationBalanceResponse)
async def get_organization_balance(
    organization_id: UUID,
    aggregator: OrganizationAggregator = Depends(get_aggregator),
):
    result = await aggregator.total_balance(organization_id)
    return OrganizationBalanceResponse(organization_id=result.organization_id, balance=result.balance)


@router.get("/{organization_id}/balance/history", response_model=list[OrganizationBalanceHistoryResponse])
async def get_organization_balance_history(
    organization_id: UUID,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    aggregator: OrganizationAggregator = Depends(get_aggregator),
):
    points = await aggregator.balance_history(organization_id, start_date, end_date)
    if not points:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return [
        OrganizationBalanceHistoryResponse(
            organization_id=p.organization_id, timestamp=p.timestamp, balance=p.balance
        )
        for p in points
    ]


@router.get("/{organization_id}/balanceByUser", response_model=list[OrganizationBalanceByUserResponse])
async def get_organization_balance_by_user(
    organization_id: UUID,
    aggregator: OrganizationAggregator = Depends(get_aggregator),
):
    rows = await aggregator.balance_by_user(organization_id)
    if not rows:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return [
        OrganizationBalanceByUserResponse(
            organization_id=r.organization_id, user_id=r.user_id, user_name=r.user_name, balance=r.balance
        )
        for r in rows
    ]


@router.get("/{organization_id}/resources", response_model=list[OrganizationResourceResponse])
async def get_organization_resources(
    organization_id: UUID,
    aggregator: OrganizationAggregator = Depends(get_aggregator),
):
    rows = await aggregator.resources(organization_id)
    if not rows:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return [
        OrganizationResourceResponse(
            organization_id=r.organization_id, resource_id=r.resource_id, quantity=r.quantity
        )
        for r in rows
    ]


@router.get("/{organization_id}/resources/history", response_model=list[OrganizationResourceHistoryResponse])
async def get_organization_resource_history(
    organization_id: UUID,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    aggregator: OrganizationAggregator = Depends(get_aggregator),
):
    points = await aggregator.resource_history(organization_id, start_date, end_date)
    if not points:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return [
        OrganizationResourceHistoryResponse(
            organization_id=p.organization_id,
            resource_id=p.resource_id,
            timestamp=p.timestamp,
            quantity=p.quantity,
        )
        for p in points
    ]


@router.get("/{organization_id}/resourcesByUser", response_model=list[OrganizationResourceByUserResponse])
async def get_organization_resources_by_user(
    organization_id: UUID,
    aggregator: OrganizationAggregator = Depends(get_aggregator),
):
    rows = await aggregator.resources_by_user(organization_id)
    if not rows:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return [
        OrganizationResourceByUserResponse(
            organization_id=r.organization_id,
            user_id=r.user_id,
            user_name=r.user_name,
            resource_id=r.resource_id,
            quantity=r.quantity,
        )
        for r in rows
    ]
