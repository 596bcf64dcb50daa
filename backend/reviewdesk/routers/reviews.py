from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from reviewdesk.core.auth import get_current_user
from reviewdesk.core.database import get_db
from reviewdesk.schemas.review import (
    ReplyRequest,
    ReplyResponse,
    ReviewAnalysisRequest,
    ReviewAnalysisResponse,
)
from reviewdesk.services.review_ai_service import REPLY_UNAVAILABLE, ReviewAIService

router = APIRouter()

STORED_ANALYSIS_ACTION = "generate_sentiment_analysis"


@router.post(
    "/analysis",
    response_model=ReviewAnalysisResponse,
    response_model_exclude_none=True,
    summary="Analyse review sentiment",
    responses={
        400: {"description": "Reviews array is required"},
        401: {"description": "Unauthorized"},
        500: {"description": "OpenAI not configured"},
    },
)
async def analyze_reviews(
    data: ReviewAnalysisRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> ReviewAnalysisResponse:
    """Analyse the posted reviews, or the caller's stored reviews in a date range.

    Stored analysis runs when ``action`` is ``generate_sentiment_analysis``.
    """
    service = ReviewAIService(db)
    try:
        if data.action == STORED_ANALYSIS_ACTION:
            count, message = await service.analyze_saved_reviews(
                user_id, data.start_date, data.end_date, location_id=data.location_id
            )
            return ReviewAnalysisResponse(
                message=message, analyzed_count=count if count else None
            )

        if data.reviews is None:
            raise HTTPException(status_code=400, detail="Reviews array is required")
        reviews = await service.analyze_reviews([r.model_dump() for r in data.reviews])
        return ReviewAnalysisResponse(reviews=reviews)
    finally:
        await service.client.close()


@router.post(
    "/reply",
    response_model=ReplyResponse,
    response_model_exclude_none=True,
    summary="Draft a reply",
    responses={
        400: {"description": "Prompt is required"},
        401: {"description": "Unauthorized"},
        500: {"description": "OpenAI not configured"},
    },
)
async def generate_reply(
    data: ReplyRequest,
    user_id: UUID = Depends(get_current_user),
) -> ReplyResponse | JSONResponse:
    service = ReviewAIService()
    try:
        reply = await service.generate_reply(data.prompt)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    finally:
        await service.client.close()
    if reply is None:
        return JSONResponse(status_code=200, content={"error": REPLY_UNAVAILABLE})
    return ReplyResponse(reply=reply)
