from typing import Any

from sqlalchemy.orm import Session

from reviewdesk.models.campaign import CampaignVisit, MarketingCampaign


class CampaignRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_code(self, campaign_code: str) -> MarketingCampaign | None:
        return (
            self.db.query(MarketingCampaign)
            .filter(MarketingCampaign.campaign_code == campaign_code)
            .first()
        )

    def create_campaign(self, campaign_code: str, name: str, is_active: bool = True) -> MarketingCampaign:
        campaign = MarketingCampaign(campaign_code=campaign_code, name=name, is_active=is_active)
        self.db.add(campaign)
        self.db.commit()
        self.db.refresh(campaign)
        return campaign

    def create_visit(self, **fields: Any) -> CampaignVisit:
        visit = CampaignVisit(**fields)
        self.db.add(visit)
        self.db.commit()
        self.db.refresh(visit)
        return visit

    def count_visits(self, campaign_code: str) -> int:
        return (
            self.db.query(CampaignVisit)
            .filter(CampaignVisit.campaign_code == campaign_code)
            .count()
        )
