from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from reviewdesk.core.auth import get_optional_user
from reviewdesk.core.database import get_db
from reviewdesk.schemas.campaign import CampaignVisitCreate, CampaignVisitResponse
from reviewdesk.services.campaign_service import CampaignService, client_ip

router = APIRouter()


@router.post(
    "/visits",
    response_model=CampaignVisitResponse,
    summary="Track campaign visit",
    responses={400: {"description": "Invalid visit payload"}},
)
async def track_visit(
    data: CampaignVisitCreate,
    request: Request,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_optional_user),
) -> CampaignVisitResponse:
    """Record a landing-page visit; anonymous visitors are allowed."""
    CampaignService(db).track_visit(
        data,
        user_id=user_id,
        ip_address=client_ip(
            request.headers.get("X-Forwarded-For"), request.headers.get("X-Real-IP")
        ),
    )
    return CampaignVisitResponse()
