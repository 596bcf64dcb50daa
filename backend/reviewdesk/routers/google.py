from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from reviewdesk.core.auth import get_current_user, get_google_token
from reviewdesk.core.database import get_db
from reviewdesk.schemas.google import (
    GoogleBusinessRequest,
    OAuthCallbackRequest,
    OAuthCallbackResponse,
)
from reviewdesk.services.google_business import (
    GoogleBusinessClient,
    GoogleBusinessService,
    exchange_oauth_code,
)

router = APIRouter()


@router.post(
    "/business",
    summary="Google Business Profile action",
    responses={
        400: {"description": "Invalid action or missing parameter"},
        401: {"description": "Unauthorized"},
        404: {"description": "No Google Business accounts found"},
    },
)
async def business_action(
    data: GoogleBusinessRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
    google_token: str = Depends(get_google_token),
) -> dict[str, Any]:
    """Run a Business Profile action with the caller's Google token.

    Actions: ``get_user_locations``, ``search_locations``, ``fetch_reviews``,
    ``fetch_analytics`` and ``reply_to_review``.
    """
    client = GoogleBusinessClient(google_token)
    try:
        return await GoogleBusinessService(db, client).dispatch(
            data.action,
            user_id,
            location_id=data.locationId,
            query=data.query,
            start_date=data.startDate,
            end_date=data.endDate,
            reply_text=data.replyText,
            review_id=data.review_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    finally:
        await client.close()


@router.post(
    "/oauth/callback",
    response_model=OAuthCallbackResponse,
    summary="Store Google OAuth tokens",
    responses={
        401: {"description": "Unauthorized"},
        500: {"description": "Google OAuth not configured"},
    },
)
async def oauth_callback(
    data: OAuthCallbackRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> OAuthCallbackResponse:
    await exchange_oauth_code(db, user_id, data.code, redirect_uri=data.redirect_uri)
    return OAuthCallbackResponse()
