import logging
import uuid
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm

from app.config import Settings
from app.dependencies import get_app_settings, get_organization_service, get_repository
from app.repositories.base import LedgerRepository
from app.repositories.records import UserRecord
from app.schemas.user import FullUserResponse, TokenWithUser, UserClaims, UserCreate
from app.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    get_current_principal,
    require_policy,
)
from app.services.authorization import DEVELOPER_POLICY, Principal
from app.services.organization_service import OrganizationService

logger = logging.getLogger(__name__)

router = APIRouter()


def build_user_response(user: UserRecord) -> FullUserResponse:
    return FullUserResponse(
        user_id=user.id,
        email=user.email,
        user_name=user.user_name,
        star_citizen_handle=user.star_citizen_handle,
        organization_id=user.org_id,
        is_owner=user.is_owner,
        is_admin=user.is_admin,
    )


def issue_session(response: Response, user: UserRecord, settings: Settings) -> TokenWithUser:
    """Create an access token and mirror it into the session cookie."""
    access_token = create_access_token(data={"sub": str(user.id)})
    response.set_cookie(
        settings.session_cookie_name,
        access_token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        samesite="lax",
    )
    return TokenWithUser(
        access_token=access_token,
        token_type="bearer",
        user=build_user_response(user)
    )


@router.post("/register", response_model=TokenWithUser, status_code=status.HTTP_201_CREATED)
async def register(
    data: UserCreate,
    response: Response,
    repo: LedgerRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
):
    existing_user = await repo.get_user_by_email(data.email)
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    user = await repo.add_user(UserRecord(
        id=uuid.uuid4(),
        email=data.email,
        user_name=data.user_name or data.email,
        star_citizen_handle=data.star_citizen_handle,
        hashed_password=get_password_hash(data.password),
    ))
    await repo.commit()
    logger.info("Registered user %s", user.id)

    return issue_session(response, user, settings)


@router.post("/login", response_model=TokenWithUser)
async def login(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    response: Response,
    repo: LedgerRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
):
    user = await repo.get_user_by_email(form_data.username)

    if not user or not user.hashed_password or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return issue_session(response, user, settings)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response, settings: Settings = Depends(get_app_settings)):
    response.delete_cookie(settings.session_cookie_name)


@router.get("/me", response_model=FullUserResponse)
async def get_me(
    principal: Annotated[Principal, Depends(get_current_principal)],
    repo: LedgerRepository = Depends(get_repository),
):
    user = await repo.get_user(principal.user_id)
    return build_user_response(user)


@router.post("/{user_id}/claims", response_model=UserClaims)
async def update_user_claims(
    user_id: uuid.UUID,
    data: UserClaims,
    principal: Principal = Depends(require_policy(DEVELOPER_POLICY)),
    organizations: OrganizationService = Depends(get_organization_service),
):
    """Add claims the user does not hold yet. Existing claim types are left untouched."""
    claims = await organizations.update_claims(user_id, data.claims)
    return UserClaims(claims=claims)
