from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, UniqueConstraint, func

from reviewdesk.core.database import Base
from reviewdesk.models.shared import UUIDType, generate_uuid


class SavedReview(Base):
    """A Google Business review stored locally with its AI analysis."""

    __tablename__ = "saved_reviews"
    __table_args__ = (
        UniqueConstraint("google_review_id", "location_id", name="uq_saved_reviews_google_location"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(UUIDType, nullable=False, index=True)
    location_id = Column(String(255), nullable=False, index=True)
    google_review_id = Column(String(255), nullable=False)
    author_name = Column(String(255), nullable=False, default="Anonymous")
    rating = Column(Integer, nullable=False, default=0)
    text = Column(Text, nullable=False, default="")
    review_date = Column(DateTime(timezone=True), nullable=True)
    reply_text = Column(Text, nullable=True)
    reply_date = Column(DateTime(timezone=True), nullable=True)

    ai_sentiment = Column(String(20), nullable=True)
    ai_tags = Column(JSON, nullable=False, default=list)
    ai_issues = Column(JSON, nullable=True)
    ai_suggestions = Column(JSON, nullable=True)
    ai_analyzed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
