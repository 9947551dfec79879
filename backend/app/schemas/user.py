from pydantic import EmailStr, Field
from uuid import UUID
from datetime import date

from app.schemas.base import CamelModel
from app.services.ledger_types import UpdateType


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8)
    user_name: str | None = None
    star_citizen_handle: str | None = None


class UserResponse(CamelModel):
    user_id: UUID
    email: str
    star_citizen_handle: str | None = None


class FullUserResponse(UserResponse):
    user_name: str
    organization_id: UUID | None = None
    is_owner: bool = False
    is_admin: bool = False


class UpdateUserRequest(CamelModel):
    email: EmailStr | None = None
    star_citizen_handle: str | None = Field(default=None, max_length=100)


class Token(CamelModel):
    access_token: str
    token_type: str = "bearer"


class TokenWithUser(Token):
    user: FullUserResponse


class UserClaims(CamelModel):
    claims: dict[str, str]


class UserBalanceResponse(CamelModel):
    user_id: UUID
    balance: int


class UpdateUserBalanceRequest(CamelModel):
    update_amount: int = Field(le=2**63 - 1)
    update_type: UpdateType


class UpdateUserBalanceResponse(UserBalanceResponse):
    history_recorded: bool = True


class UserBalanceHistoryResponse(CamelModel):
    id: int
    user_id: UUID
    timestamp: date
    balance: int
