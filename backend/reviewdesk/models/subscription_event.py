"""SubscriptionEvent model - append-only audit trail for subscription changes."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, func

from reviewdesk.core.database import Base
from reviewdesk.models.shared import UUIDType, generate_uuid


class SubscriptionEvent(Base):
    __tablename__ = "subscription_events"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    subscription_id = Column(
        UUIDType,
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_type = Column(String(100), nullable=False, index=True)
    provider = Column(String(20), nullable=True)
    provider_event_id = Column(String(255), nullable=True, index=True)
    event_data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
