"""Marketing campaign visit tracking."""

import logging
import re
from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.models.campaign import CampaignVisit
from reviewdesk.repositories.campaign_repository import CampaignRepository
from reviewdesk.schemas.campaign import CampaignVisitCreate

logger = logging.getLogger(__name__)

_MOBILE = re.compile(r"mobile", re.IGNORECASE)
_TABLET = re.compile(r"tablet|ipad", re.IGNORECASE)


def detect_device_type(user_agent: str | None) -> str:
    if not user_agent:
        return "unknown"
    if _MOBILE.search(user_agent):
        return "mobile"
    if _TABLET.search(user_agent):
        return "tablet"
    return "desktop"


def detect_browser(user_agent: str | None) -> str:
    if not user_agent:
        return "unknown"
    ua = user_agent.lower()
    if "chrome" in ua and "edge" not in ua:
        return "chrome"
    if "safari" in ua and "chrome" not in ua:
        return "safari"
    if "firefox" in ua:
        return "firefox"
    if "edge" in ua:
        return "edge"
    return "other"


def client_ip(forwarded_for: str | None, real_ip: str | None) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, else ``unknown``."""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return real_ip or "unknown"


class CampaignService:
    def __init__(self, db: Session):
        self.db = db
        self.campaign_repo = CampaignRepository(db)

    def track_visit(
        self,
        data: CampaignVisitCreate,
        user_id: UUID | None = None,
        ip_address: str = "unknown",
    ) -> CampaignVisit:
        """Record a landing visit; unknown and inactive campaigns are still tracked."""
        campaign = self.campaign_repo.get_by_code(data.campaign_code)
        if campaign is None:
            logger.info("Tracking visit for unknown campaign %s", data.campaign_code)
        elif not campaign.is_active:
            logger.info("Tracking visit for inactive campaign %s", data.campaign_code)

        return self.campaign_repo.create_visit(
            campaign_code=data.campaign_code,
            campaign_id=campaign.id if campaign is not None else None,
            visitor_id=data.visitor_id,
            user_id=user_id,
            session_id=data.session_id or None,
            landing_page=data.landing_page,
            referrer=data.referrer or None,
            utm_source=data.utm_source or None,
            utm_medium=data.utm_medium or None,
            utm_campaign=data.utm_campaign or None,
            utm_content=data.utm_content or None,
            utm_term=data.utm_term or None,
            ip_address=ip_address,
            user_agent=data.user_agent or None,
            device_type=detect_device_type(data.user_agent),
            browser=detect_browser(data.user_agent),
        )
