from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, func

from reviewdesk.core.database import Base
from reviewdesk.models.shared import UUIDType, generate_uuid


class TransactionStatus(str, Enum):
    COMPLETED = "completed"
    REFUNDED = "refunded"


class PaymentTransaction(Base):
    """A charge confirmed by a payment provider."""

    __tablename__ = "payment_transactions"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(UUIDType, nullable=False, index=True)
    subscription_id = Column(
        UUIDType,
        ForeignKey("subscriptions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    provider = Column(String(20), nullable=False)
    provider_transaction_id = Column(String(255), nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default=TransactionStatus.COMPLETED.value)
    transaction_metadata = Column(JSON, nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
