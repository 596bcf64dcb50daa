from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from reviewdesk.core.auth import get_current_user
from reviewdesk.core.config import settings
from reviewdesk.core.database import get_db
from reviewdesk.core.errors import ConfigurationError
from reviewdesk.models.subscription import Subscription
from reviewdesk.models.user_plan import UserPlan
from reviewdesk.repositories.user_plan_repository import UserPlanRepository
from reviewdesk.schemas.subscription import (
    PayPalPublicConfig,
    SubscriptionCancel,
    SubscriptionCreate,
    SubscriptionCreateResponse,
    SubscriptionRefund,
    SubscriptionRefundResponse,
    SubscriptionResponse,
    UserPlanResponse,
)
from reviewdesk.services.subscription_service import SubscriptionService
from reviewdesk.tasks import enqueue_sync_subscription

router = APIRouter()


@router.post(
    "/",
    response_model=SubscriptionCreateResponse,
    status_code=201,
    summary="Create subscription",
    responses={
        400: {"description": "Invalid plan, provider or saved card"},
        401: {"description": "Unauthorized"},
        404: {"description": "Payment method not found"},
        500: {"description": "Provider not configured"},
        502: {"description": "Provider request failed"},
    },
)
async def create_subscription(
    data: SubscriptionCreate,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> SubscriptionCreateResponse:
    """Open a subscription with the chosen provider.

    Redirect providers return an ``approval_url``. A saved Keepz card is
    charged directly and the subscription comes back active.
    """
    service = SubscriptionService(db)
    try:
        created = service.create_subscription(user_id, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    subscription = created.subscription
    return SubscriptionCreateResponse(
        subscription_id=subscription.id,  # type: ignore[arg-type]
        provider=str(subscription.provider),
        status=str(subscription.status),
        approval_url=created.approval_url,
    )


@router.get(
    "/",
    response_model=list[SubscriptionResponse],
    summary="List subscriptions",
    responses={401: {"description": "Unauthorized"}},
)
async def list_subscriptions(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> list[Subscription]:
    return SubscriptionService(db).list_subscriptions(user_id)


@router.get(
    "/plan",
    response_model=UserPlanResponse,
    summary="Current plan",
    responses={401: {"description": "Unauthorized"}, 404: {"description": "No active plan"}},
)
async def get_current_plan(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> UserPlan:
    plan = UserPlanRepository(db).get_by_user_id(user_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="No active plan")
    return plan


@router.get(
    "/paypal/config",
    response_model=PayPalPublicConfig,
    summary="PayPal client configuration",
)
async def get_paypal_config() -> PayPalPublicConfig:
    """Public PayPal client id and mode for the checkout button."""
    if not settings.paypal_client_id:
        raise ConfigurationError("PayPal client ID not configured")
    return PayPalPublicConfig(client_id=settings.paypal_client_id, mode=settings.paypal_mode)


@router.post(
    "/{subscription_id}/cancel",
    response_model=SubscriptionResponse,
    summary="Cancel subscription",
    responses={
        400: {"description": "Subscription cannot be cancelled"},
        401: {"description": "Unauthorized"},
        404: {"description": "Subscription not found"},
    },
)
async def cancel_subscription(
    subscription_id: UUID,
    data: SubscriptionCancel | None = None,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> Subscription:
    reason = data.reason if data else None
    return SubscriptionService(db).cancel_subscription(user_id, subscription_id, reason)


@router.post(
    "/{subscription_id}/refund",
    response_model=SubscriptionRefundResponse,
    summary="Refund subscription",
    responses={
        400: {"description": "Refund not allowed"},
        401: {"description": "Unauthorized"},
        404: {"description": "Subscription not found"},
    },
)
async def refund_subscription(
    subscription_id: UUID,
    data: SubscriptionRefund | None = None,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> SubscriptionRefundResponse:
    """Refund the latest charge inside the refund window and revoke the plan."""
    reason = data.reason if data else None
    outcome = SubscriptionService(db).refund_subscription(user_id, subscription_id, reason)
    return SubscriptionRefundResponse(
        subscription_id=outcome.subscription.id,  # type: ignore[arg-type]
        status=str(outcome.subscription.status),
        refund_id=outcome.refund_id,
        amount_cents=outcome.amount_cents,
    )


@router.get(
    "/{subscription_id}/check",
    response_model=SubscriptionResponse,
    summary="Sync subscription with provider",
    responses={
        400: {"description": "Provider does not support polling"},
        401: {"description": "Unauthorized"},
        404: {"description": "Subscription not found"},
    },
)
async def check_subscription(
    subscription_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> Subscription:
    service = SubscriptionService(db)
    try:
        return service.check_subscription(user_id, subscription_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.post(
    "/{subscription_id}/sync",
    status_code=202,
    summary="Enqueue provider sync",
    responses={
        400: {"description": "Provider does not support polling"},
        401: {"description": "Unauthorized"},
        404: {"description": "Subscription not found"},
    },
)
async def enqueue_subscription_sync(
    subscription_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> dict[str, str]:
    """Queue a background poll of the provider for this subscription."""
    try:
        SubscriptionService(db).get_pollable(user_id, subscription_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    job = await enqueue_sync_subscription(str(subscription_id))
    return {"job_id": job.job_id}
