from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from reviewdesk.core.database import Base
from reviewdesk.models.shared import UUIDType, generate_uuid


class InvoiceStatus(str, Enum):
    PAID = "paid"


class Invoice(Base):
    """Point-in-time billing record with a snapshot of the customer details."""

    __tablename__ = "invoices"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    invoice_number = Column(String(50), unique=True, index=True, nullable=False)
    user_id = Column(UUIDType, nullable=False, index=True)
    subscription_id = Column(
        UUIDType,
        ForeignKey("subscriptions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    payment_method = Column(String(30), nullable=False)
    paypal_transaction_id = Column(String(255), nullable=True)
    lemonsqueezy_order_id = Column(String(255), nullable=True)
    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default=InvoiceStatus.PAID.value)
    plan_type = Column(String(20), nullable=False)
    plan_name = Column(String(100), nullable=False)

    # Customer snapshot
    customer_email = Column(String(255), nullable=True)
    customer_name = Column(String(255), nullable=True)
    customer_company = Column(String(255), nullable=True)

    billing_period_start = Column(DateTime(timezone=True), nullable=True)
    billing_period_end = Column(DateTime(timezone=True), nullable=True)
    invoice_date = Column(DateTime(timezone=True), nullable=False)
    paid_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
