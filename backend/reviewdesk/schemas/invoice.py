from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from reviewdesk.models.subscription import PlanType


class InvoiceCreate(BaseModel):
    user_id: UUID
    subscription_id: UUID | None = None
    payment_method: str = Field(..., min_length=1, max_length=30)
    transaction_id: str | None = None
    amount_cents: int = Field(..., ge=0)
    plan_type: PlanType
    billing_period_start: datetime | None = None
    billing_period_end: datetime | None = None


class InvoiceCreateResponse(BaseModel):
    success: bool = True
    invoice_id: UUID
    invoice_number: str


class InvoiceResponse(BaseModel):
    id: UUID
    invoice_number: str
    user_id: UUID
    subscription_id: UUID | None = None
    payment_method: str
    paypal_transaction_id: str | None = None
    lemonsqueezy_order_id: str | None = None
    amount_cents: int
    currency: str
    status: str
    plan_type: str
    plan_name: str
    customer_email: str | None = None
    customer_name: str | None = None
    customer_company: str | None = None
    billing_period_start: datetime | None = None
    billing_period_end: datetime | None = None
    invoice_date: datetime
    paid_date: datetime | None = None

    model_config = {"from_attributes": True}
