from sqlalchemy import Boolean, Column, DateTime, Integer, String, UniqueConstraint, func

from reviewdesk.core.database import Base
from reviewdesk.models.shared import UUIDType, generate_uuid


class BillingPlan(Base):
    """Price of a plan on a given provider."""

    __tablename__ = "billing_plans"
    __table_args__ = (UniqueConstraint("provider", "plan_type", name="uq_billing_plans_provider_plan"),)

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    provider = Column(String(20), nullable=False)
    plan_type = Column(String(20), nullable=False)
    price_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    interval = Column(String(20), nullable=False, default="monthly")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
