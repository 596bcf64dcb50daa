from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from reviewdesk.core.auth import get_current_user
from reviewdesk.core.database import get_db
from reviewdesk.models.payment_method import UserPaymentMethod
from reviewdesk.schemas.payment_method import (
    CardSaveCreate,
    CardSaveResponse,
    PaymentMethodResponse,
)
from reviewdesk.services.card_vault_service import CardVaultService

router = APIRouter()


@router.post(
    "/keepz",
    response_model=CardSaveResponse,
    status_code=201,
    summary="Start saving a Keepz card",
    responses={
        401: {"description": "Unauthorized"},
        500: {"description": "Keepz not configured"},
        502: {"description": "Keepz request failed"},
    },
)
async def save_keepz_card(
    data: CardSaveCreate | None = None,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> CardSaveResponse:
    """Create a pending card and return the Keepz page where the buyer enters it."""
    data = data or CardSaveCreate()
    started = CardVaultService(db).start_card_save(
        user_id,
        nickname=data.nickname,
        success_url=data.success_url,
        fail_url=data.fail_url,
    )
    return CardSaveResponse(
        payment_method_id=started.payment_method_id,
        integrator_order_id=started.integrator_order_id,
        payment_url=started.payment_url,
    )


@router.get(
    "/",
    response_model=list[PaymentMethodResponse],
    summary="List saved cards",
    responses={401: {"description": "Unauthorized"}},
)
async def list_payment_methods(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> list[UserPaymentMethod]:
    return CardVaultService(db).list_cards(user_id)
