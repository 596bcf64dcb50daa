from sqlalchemy import Column, DateTime, String, func

from reviewdesk.core.database import Base
from reviewdesk.models.shared import UUIDType, generate_uuid


class UserPlan(Base):
    """Current entitlement of a user, mirrored from the active subscription."""

    __tablename__ = "user_plans"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(UUIDType, nullable=False, unique=True, index=True)
    plan_type = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
