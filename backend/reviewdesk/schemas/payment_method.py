"""Pydantic schemas for saved payment methods."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class CardSaveCreate(BaseModel):
    nickname: str | None = Field(default=None, max_length=100)
    success_url: str | None = None
    fail_url: str | None = None


class CardSaveResponse(BaseModel):
    payment_method_id: UUID
    integrator_order_id: str
    payment_url: str


class PaymentMethodResponse(BaseModel):
    id: UUID
    user_id: UUID
    provider: str
    card_mask: str
    card_brand: str
    last_4: str | None = None
    expiration_date: str | None = None
    nickname: str | None = None
    is_default: bool
    created_at: datetime

    model_config = {"from_attributes": True}
