from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, func, text

from reviewdesk.core.database import Base
from reviewdesk.models.shared import UUIDType, generate_uuid


class PlanType(str, Enum):
    STARTER = "starter"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


PLAN_NAMES = {
    PlanType.STARTER.value: "Starter Plan",
    PlanType.PROFESSIONAL.value: "Professional Plan",
    PlanType.ENTERPRISE.value: "Enterprise Plan",
}


class SubscriptionProvider(str, Enum):
    PAYPAL = "paypal"
    LEMONSQUEEZY = "lemonsqueezy"
    KEEPZ = "keepz"
    FAKE = "fake"


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    FAILED = "failed"


class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (
        # At most one active subscription per user
        Index(
            "uq_subscriptions_one_active_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(UUIDType, nullable=False, index=True)
    plan_type = Column(String(20), nullable=False)
    provider = Column(String(20), nullable=False)
    payment_method = Column(String(30), nullable=False)
    status = Column(
        String(20), nullable=False, default=SubscriptionStatus.PENDING.value, index=True
    )
    amount_cents = Column(Integer, nullable=True)
    currency = Column(String(3), nullable=True)

    provider_subscription_id = Column(String(255), nullable=True, index=True)
    keepz_order_id = Column(String(255), nullable=True, index=True)
    keepz_subscription_id = Column(String(255), nullable=True)
    keepz_card_token = Column(String(255), nullable=True)

    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    can_refund = Column(Boolean, nullable=False, default=True)
    refund_eligible_until = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)

    # Campaign / UTM attribution
    campaign_code = Column(String(100), nullable=True)
    referral_source = Column(String(255), nullable=True)
    referral_medium = Column(String(255), nullable=True)
    referral_campaign = Column(String(255), nullable=True)
    referral_content = Column(String(255), nullable=True)
    referral_term = Column(String(255), nullable=True)
    landing_page = Column(String(2048), nullable=True)
    conversion_page = Column(String(2048), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
