from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from reviewdesk.models.subscription import PlanType, SubscriptionProvider


class CampaignAttribution(BaseModel):
    campaign_code: str | None = Field(default=None, max_length=100)
    referral_source: str | None = Field(default=None, max_length=255)
    referral_medium: str | None = Field(default=None, max_length=255)
    referral_campaign: str | None = Field(default=None, max_length=255)
    referral_content: str | None = Field(default=None, max_length=255)
    referral_term: str | None = Field(default=None, max_length=255)
    landing_page: str | None = Field(default=None, max_length=2048)
    conversion_page: str | None = Field(default=None, max_length=2048)


class SubscriptionCreate(CampaignAttribution):
    provider: SubscriptionProvider
    plan_type: PlanType
    plan_id: str | None = Field(
        default=None, description="PayPal plan id override, must look like P-XXXX"
    )
    payment_method_id: UUID | None = Field(
        default=None, description="Saved Keepz card to charge instead of redirecting"
    )
    return_url: str | None = None
    cancel_url: str | None = None


class SubscriptionCreateResponse(BaseModel):
    subscription_id: UUID
    provider: str
    status: str
    approval_url: str | None = None


class SubscriptionCancel(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class SubscriptionRefund(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class SubscriptionResponse(BaseModel):
    id: UUID
    user_id: UUID
    plan_type: str
    provider: str
    payment_method: str
    status: str
    amount_cents: int | None = None
    currency: str | None = None
    provider_subscription_id: str | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool
    can_refund: bool
    refund_eligible_until: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None
    campaign_code: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserPlanResponse(BaseModel):
    user_id: UUID
    plan_type: str
    updated_at: datetime

    model_config = {"from_attributes": True}


class PayPalPublicConfig(BaseModel):
    client_id: str
    mode: str


class SubscriptionRefundResponse(BaseModel):
    success: bool = True
    subscription_id: UUID
    status: str
    refund_id: str | None = None
    amount_cents: int | None = None
    message: str = "Refund processed successfully"
