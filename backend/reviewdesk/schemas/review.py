from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ReviewInput(BaseModel):
    model_config = {"extra": "allow"}

    text: str | None = ""
    rating: int = Field(default=0, ge=0, le=5)


class ReviewAnalysisRequest(BaseModel):
    """Either a list of reviews to analyse inline, or a stored-review range."""

    action: str | None = None
    reviews: list[ReviewInput] | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    location_id: str | None = None


class ReviewAnalysisResponse(BaseModel):
    reviews: list[dict[str, Any]] | None = None
    message: str | None = None
    analyzed_count: int | None = None


class ReplyRequest(BaseModel):
    prompt: str | None = None


class ReplyResponse(BaseModel):
    reply: str | None = None
    error: str | None = None
