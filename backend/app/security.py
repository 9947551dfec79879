from datetime import timedelta
from typing import Annotated, Callable
from uuid import UUID

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from app.config import get_settings
from app.dependencies import get_repository
from app.repositories.base import LedgerRepository
from app.services.authorization import Principal, authorize
from app.utils.clock import utcnow

settings = get_settings()

# Cookie sessions are accepted as well, so a missing header is not an error here
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/identity/login", auto_error=False)

ALGORITHM = "HS256"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode(), hashed_password.encode())


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)
    return encoded_jwt


def decode_user_id(token: str) -> UUID | None:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
        user_id: str | None = payload.get("sub")
        return UUID(user_id) if user_id else None
    except (JWTError, ValueError):
        return None


async def get_current_principal(
    request: Request,
    token: Annotated[str | None, Depends(oauth2_scheme)],
    repo: LedgerRepository = Depends(get_repository),
) -> Principal:
    """Authenticate with a bearer token, falling back to the session cookie."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token = token or request.cookies.get(settings.session_cookie_name)
    if not token:
        raise credentials_exception

    user_id = decode_user_id(token)
    if user_id is None:
        raise credentials_exception

    user = await repo.get_user(user_id)
    if user is None:
        raise credentials_exception

    claims = await repo.get_claims(user.id)
    roles = await repo.get_roles(user.id)
    return Principal(user_id=user.id, claims=tuple(claims), roles=frozenset(roles))


def require_policy(policy_name: str) -> Callable:
    """
    Dependency factory that checks the caller against a named policy.

    Usage:
        @router.delete("/{organization_id}")
        async def delete_organization(
            organization_id: UUID,
            principal: Principal = Depends(require_policy(ORGANIZATION_OWNER_POLICY))
        ):
            ...
    """
    async def policy_checker(
        principal: Principal = Depends(get_current_principal)
    ) -> Principal:
        return authorize(policy_name, principal)
    return policy_checker
