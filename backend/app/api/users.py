"""User endpoints: profile, balance and balance history."""

import logging
from datetime import date
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Response, status

from app.api.auth import build_user_response
from app.dependencies import get_balance_ledger, get_history, get_repository
from app.repositories.base import LedgerRepository
from app.repositories.records import BalanceSubject
from app.schemas.user import (
    FullUserResponse,
    UpdateUserBalanceRequest,
    UpdateUserBalanceResponse,
    UpdateUserRequest,
    UserBalanceHistoryResponse,
    UserBalanceResponse,
    UserClaims,
    UserResponse,
)
from app.security import get_current_principal, require_policy
from app.services.authorization import DEVELOPER_POLICY, Principal
from app.services.balance_ledger import BalanceLedger
from app.services.errors import NotFoundError
from app.services.history import HistorySnapshotter

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_principal)])


@router.get("", response_model=list[UserResponse])
async def list_users(repo: LedgerRepository = Depends(get_repository)):
    users = await repo.list_users()
    return [
        UserResponse(user_id=u.id, email=u.email, star_citizen_handle=u.star_citizen_handle)
        for u in users
    ]


@router.get("/claims", response_model=UserClaims)
async def get_user_claims(principal: Principal = Depends(get_current_principal)):
    """Claims of the calling user."""
    logger.info("Getting claims for user %s", principal.user_id)
    return UserClaims(claims=principal.claims_dict())


@router.get("/{user_id}", response_model=FullUserResponse)
async def get_user(user_id: UUID, repo: LedgerRepository = Depends(get_repository)):
    user = await repo.get_user(user_id)
    if user is None:
        logger.warning("The user with ID %s was not found", user_id)
        raise NotFoundError(f"The user with ID {user_id} was not found")
    return build_user_response(user)


@router.post("/{user_id}", response_model=FullUserResponse)
async def update_user(
    user_id: UUID,
    data: UpdateUserRequest,
    repo: LedgerRepository = Depends(get_repository),
):
    user = await repo.update_user_profile(
        user_id,
        email=data.email,
        user_name=data.email,
        star_citizen_handle=data.star_citizen_handle,
    )
    if user is None:
        logger.warning("The user with ID %s was not found", user_id)
        raise NotFoundError(f"The user with ID {user_id} was not found")
    if data.star_citizen_handle is not None:
        await repo.remove_claims(user_id, "StarCitizenHandle")
        await repo.add_claim(user_id, "StarCitizenHandle", data.star_citizen_handle)
    await repo.commit()
    return build_user_response(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: UUID, repo: LedgerRepository = Depends(get_repository)):
    """Delete a user together with their resources and history."""
    if not await repo.delete_user(user_id):
        logger.warning("The user with ID %s was not found", user_id)
        raise NotFoundError(f"The user with ID {user_id} was not found")
    await repo.commit()
    logger.info("User with ID %s has been deleted.", user_id)


@router.get("/{user_id}/balance", response_model=UserBalanceResponse)
async def get_user_balance(user_id: UUID, ledger: BalanceLedger = Depends(get_balance_ledger)):
    balance = await ledger.get_balance(user_id)
    return UserBalanceResponse(user_id=user_id, balance=balance)


@router.get("/{user_id}/balance/history", response_model=list[UserBalanceHistoryResponse])
async def get_user_balance_history(
    user_id: UUID,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    history: HistorySnapshotter = Depends(get_history),
):
    rows = await history.balance_history(user_id, start_date, end_date)
    return [
        UserBalanceHistoryResponse(id=r.id, user_id=r.user_id, timestamp=r.timestamp, balance=r.balance)
        for r in rows
    ]


@router.post(
    "/{user_id}/balance/history",
    response_model=UpdateUserBalanceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def update_user_balance(
    user_id: UUID,
    data: UpdateUserBalanceRequest,
    response: Response,
    ledger: BalanceLedger = Depends(get_balance_ledger),
):
    """Apply an Add/Subtract/Set update and record today's balance snapshot."""
    result = await ledger.apply_balance_update(user_id, data.update_amount, data.update_type)
    response.headers["Location"] = f"/users/{user_id}/balance"
    return UpdateUserBalanceResponse(
        user_id=result.user_id,
        balance=result.balance,
        history_recorded=result.history_recorded,
    )


@router.post("/{user_id}/balance/history/reconcile", response_model=UserBalanceHistoryResponse)
async def reconcile_user_balance_history(
    user_id: UUID,
    principal: Principal = Depends(require_policy(DEVELOPER_POLICY)),
    history: HistorySnapshotter = Depends(get_history),
):
    """Re-snapshot today's balance, e.g. after a failed history write."""
    row = await history.reconcile(BalanceSubject(user_id))
    return UserBalanceHistoryResponse(id=row.id, user_id=row.user_id, timestamp=row.timestamp, balance=row.balance)
