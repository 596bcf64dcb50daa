from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from reviewdesk.core.auth import get_current_user
from reviewdesk.core.database import get_db
from reviewdesk.models.invoice import Invoice
from reviewdesk.repositories.invoice_repository import InvoiceRepository
from reviewdesk.schemas.invoice import InvoiceCreate, InvoiceCreateResponse, InvoiceResponse
from reviewdesk.services.invoice_service import InvoiceService

router = APIRouter()


@router.post(
    "/",
    response_model=InvoiceCreateResponse,
    status_code=201,
    summary="Generate invoice",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Invoice belongs to another user"},
        404: {"description": "User profile not found"},
    },
)
async def create_invoice(
    data: InvoiceCreate,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> InvoiceCreateResponse:
    if data.user_id != user_id:
        raise HTTPException(status_code=403, detail="Cannot create invoices for another user")
    invoice = InvoiceService(db).generate_invoice(
        user_id=data.user_id,
        payment_method=data.payment_method,
        amount_cents=data.amount_cents,
        plan_type=data.plan_type.value,
        subscription_id=data.subscription_id,
        transaction_id=data.transaction_id,
        billing_period_start=data.billing_period_start,
        billing_period_end=data.billing_period_end,
    )
    return InvoiceCreateResponse(
        invoice_id=invoice.id,  # type: ignore[arg-type]
        invoice_number=str(invoice.invoice_number),
    )


@router.get(
    "/",
    response_model=list[InvoiceResponse],
    summary="List invoices",
    responses={401: {"description": "Unauthorized"}},
)
async def list_invoices(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> list[Invoice]:
    return InvoiceRepository(db).get_by_user_id(user_id, skip=skip, limit=limit)
