"""Marketing campaign and visit attribution models."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, func

from reviewdesk.core.database import Base
from reviewdesk.models.shared import UUIDType, generate_uuid


class MarketingCampaign(Base):
    __tablename__ = "marketing_campaigns"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    campaign_code = Column(String(100), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CampaignVisit(Base):
    __tablename__ = "campaign_visits"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    campaign_code = Column(String(100), nullable=True, index=True)
    campaign_id = Column(
        UUIDType,
        ForeignKey("marketing_campaigns.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    visitor_id = Column(String(255), nullable=True)
    user_id = Column(UUIDType, nullable=True)
    session_id = Column(String(255), nullable=True)
    landing_page = Column(String(2048), nullable=True)
    referrer = Column(String(2048), nullable=True)
    utm_source = Column(String(255), nullable=True)
    utm_medium = Column(String(255), nullable=True)
    utm_campaign = Column(String(255), nullable=True)
    utm_content = Column(String(255), nullable=True)
    utm_term = Column(String(255), nullable=True)
    ip_address = Column(String(255), nullable=True)
    user_agent = Column(String(1024), nullable=True)
    device_type = Column(String(20), nullable=False, default="unknown")
    browser = Column(String(20), nullable=False, default="unknown")
    visited_at = Column(DateTime(timezone=True), server_default=func.now())
