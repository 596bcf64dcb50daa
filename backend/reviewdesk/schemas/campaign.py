from pydantic import BaseModel, Field


class CampaignVisitCreate(BaseModel):
    campaign_code: str = Field(..., min_length=1, max_length=100)
    visitor_id: str | None = None
    session_id: str | None = None
    landing_page: str | None = None
    referrer: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_content: str | None = None
    utm_term: str | None = None
    user_agent: str | None = None


class CampaignVisitResponse(BaseModel):
    success: bool = True
    message: str = "Visit tracked successfully"
