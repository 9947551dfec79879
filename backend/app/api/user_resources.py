"""Per-user resource holdings and their history."""

import logging
from datetime import date
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from app.dependencies import get_history, get_resource_ledger
from app.repositories.records import ResourceSubject
from app.schemas.resource import (
    AttachUserResourceRequest,
    ResourceQuantityHistoryResponse,
    UpdateUserResourceRequest,
    UpdateUserResourceResponse,
    UserResourceResponse,
)
from app.security import get_current_principal, require_policy
from app.services.authorization import DEVELOPER_POLICY, Principal
from app.services.history import HistorySnapshotter
from app.services.resource_ledger import ResourceLedger

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_principal)])


@router.get("/{user_id}", response_model=list[UserResourceResponse])
async def list_user_resources(user_id: UUID, ledger: ResourceLedger = Depends(get_resource_ledger)):
    user_resources = await ledger.list_user_resources(user_id)
    return [
        UserResourceResponse(user_id=ur.user_id, resource_id=ur.resource_id, quantity=ur.quantity)
        for ur in user_resources
    ]


@router.post("/{user_id}", response_model=UpdateUserResourceResponse, status_code=status.HTTP_201_CREATED)
async def update_user_resource(
    user_id: UUID,
    data: UpdateUserResourceRequest,
    ledger: ResourceLedger = Depends(get_resource_ledger),
):
    """Apply an Add/Subtract/Set update to one holding and snapshot today's quantity."""
    result = await ledger.apply_resource_update(user_id, data.resource_id, data.quantity, data.update_type)
    return UpdateUserResourceResponse(
        user_id=result.user_id,
        resource_id=result.resource_id,
        quantity=result.quantity,
        history_recorded=result.history_recorded,
    )


@router.get("/{user_id}/history", response_model=list[ResourceQuantityHistoryResponse])
async def get_user_resource_history(
    user_id: UUID,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    history: HistorySnapshotter = Depends(get_history),
):
    rows = await history.resource_history(user_id, start_date, end_date)
    return [
        ResourceQuantityHistoryResponse(
            user_id=r.user_id, resource_id=r.resource_id, timestamp=r.timestamp, quantity=r.quantity
        )
        for r in rows
    ]


@router.get("/{user_id}/{resource_id}", response_model=UserResourceResponse)
async def get_user_resource(
    user_id: UUID,
    resource_id: int,
    ledger: ResourceLedger = Depends(get_resource_ledger),
):
    ur = await ledger.get_user_resource(user_id, resource_id)
    return UserResourceResponse(user_id=ur.user_id, resource_id=ur.resource_id, quantity=ur.quantity)


@router.put("/{user_id}/{resource_id}", response_model=UserResourceResponse)
async def attach_user_resource(
    user_id: UUID,
    resource_id: int,
    data: AttachUserResourceRequest,
    ledger: ResourceLedger = Depends(get_resource_ledger),
):
    ur = await ledger.attach_resource(user_id, resource_id, data.quantity)
    return UserResourceResponse(user_id=ur.user_id, resource_id=ur.resource_id, quantity=ur.quantity)


@router.post("/{user_id}/{resource_id}/history/reconcile", response_model=ResourceQuantityHistoryResponse)
async def reconcile_user_resource_history(
    user_id: UUID,
    resource_id: int,
    principal: Principal = Depends(require_policy(DEVELOPER_POLICY)),
    history: HistorySnapshotter = Depends(get_history),
):
    row = await history.reconcile(ResourceSubject(user_id, resource_id))
    return ResourceQuantityHistoryResponse(
        user_id=row.user_id, resource_id=row.resource_id, timestamp=row.timestamp, quantity=row.quantity
    )
