from datetime import date

from pydantic import BaseModel, Field


class GoogleBusinessRequest(BaseModel):
    action: str | None = None
    locationId: str | None = None
    query: str | None = None
    startDate: date | None = None
    endDate: date | None = None
    replyText: str | None = None
    review_id: str | None = None


class OAuthCallbackRequest(BaseModel):
    code: str = Field(..., min_length=1)
    redirect_uri: str | None = None


class OAuthCallbackResponse(BaseModel):
    success: bool = True
    message: str = "Google tokens stored successfully"
