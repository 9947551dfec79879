from pydantic import Field
from uuid import UUID
from datetime import date, datetime

from app.schemas.base import CamelModel
from app.services.ledger_types import UpdateType


class ResourceResponse(CamelModel):
    resource_id: int
    name: str
    code: str
    type: str
    price_buy: float
    price_sell: float
    last_updated: datetime


class UpdateResourceRequest(CamelModel):
    name: str = Field(max_length=100)
    code: str = Field(min_length=1, max_length=4)
    type: str = Field(max_length=50)
    price_buy: float = Field(default=0.0, allow_inf_nan=False)
    price_sell: float = Field(default=0.0, allow_inf_nan=False)


class UserResourceResponse(CamelModel):
    user_id: UUID
    resource_id: int
    quantity: float


class UpdateUserResourceRequest(CamelModel):
    resource_id: int
    quantity: float = Field(allow_inf_nan=False)
    update_type: UpdateType


class UpdateUserResourceResponse(UserResourceResponse):
    history_recorded: bool = True


class AttachUserResourceRequest(CamelModel):
    quantity: float = Field(default=0.0, ge=0, allow_inf_nan=False)


class ResourceQuantityHistoryResponse(CamelModel):
    user_id: UUID
    resource_id: int
    timestamp: date
    quantity: float
