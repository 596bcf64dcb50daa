import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from reviewdesk.core.database import get_db
from reviewdesk.services.payment_provider import get_subscription_provider
from reviewdesk.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/{provider}",
    summary="Receive provider webhook",
    responses={
        400: {"description": "Unreadable payload"},
        401: {"description": "Invalid signature"},
        404: {"description": "Unknown provider"},
    },
)
async def handle_webhook(
    provider: str,
    request: Request,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Verify, decode and reconcile a subscription webhook.

    Events that match no local subscription are acknowledged with
    ``status: ignored`` so the provider stops retrying.
    """
    try:
        subscription_provider = get_subscription_provider(provider)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown provider: {provider}") from None

    payload = await request.body()
    if not subscription_provider.verify_webhook_signature(payload, request.headers):
        logger.warning("Rejected %s webhook with invalid signature", provider)
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        body = subscription_provider.decode_webhook_body(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    if body is None:
        logger.info("Acknowledged empty %s callback", provider)
        return {"success": True, "message": "Callback acknowledged"}

    event = subscription_provider.parse_webhook(body)
    result = ReconciliationService(db).apply(event)
    return result.to_dict()
