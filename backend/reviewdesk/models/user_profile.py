from sqlalchemy import BigInteger, Column, DateTime, String, Text, func

from reviewdesk.core.database import Base
from reviewdesk.models.shared import UUIDType


class UserProfile(Base):
    """Profile of an authenticated user; ``id`` is the auth user id."""

    __tablename__ = "user_profiles"

    id = Column(UUIDType, primary_key=True)
    email = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)
    company_name = Column(String(255), nullable=True)

    # Google Business Profile OAuth tokens
    google_access_token = Column(Text, nullable=True)
    google_refresh_token = Column(Text, nullable=True)
    google_token_expires_at = Column(BigInteger, nullable=True)  # epoch milliseconds

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
