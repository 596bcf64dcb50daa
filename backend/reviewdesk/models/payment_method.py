"""UserPaymentMethod model for vaulted Keepz cards."""

from sqlalchemy import Boolean, Column, DateTime, String, func

from reviewdesk.core.database import Base
from reviewdesk.models.shared import UUIDType, generate_uuid

# Placeholder written before the save-card redirect; replaced by the webhook
PENDING_CARD_MASK = "pending"


class UserPaymentMethod(Base):
    __tablename__ = "user_payment_methods"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(UUIDType, nullable=False, index=True)
    provider = Column(String(20), nullable=False, default="keepz")

    # Holds the integratorOrderId until the provider returns the real token
    card_token = Column(String(255), nullable=False, index=True)
    card_mask = Column(String(50), nullable=False, default=PENDING_CARD_MASK)
    card_brand = Column(String(50), nullable=False, default=PENDING_CARD_MASK)
    last_4 = Column(String(4), nullable=True)
    expiration_date = Column(String(10), nullable=True)
    nickname = Column(String(100), nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
