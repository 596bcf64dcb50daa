"""Invoice generation for completed charges."""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.core.errors import NotFoundError
from reviewdesk.models.invoice import Invoice, InvoiceStatus
from reviewdesk.models.subscription import PLAN_NAMES, SubscriptionProvider
from reviewdesk.repositories.invoice_repository import InvoiceRepository
from reviewdesk.repositories.user_profile_repository import UserProfileRepository

logger = logging.getLogger(__name__)

INVOICE_CURRENCY = "USD"


class ProfileNotFoundError(NotFoundError):
    """The customer has no profile to snapshot onto the invoice."""


class InvoiceService:
    """Creates invoices with a point-in-time snapshot of the customer."""

    def __init__(self, db: Session):
        self.db = db
        self.invoice_repo = InvoiceRepository(db)
        self.profile_repo = UserProfileRepository(db)

    def generate_invoice(
        self,
        *,
        user_id: UUID,
        payment_method: str,
        amount_cents: int,
        plan_type: str,
        subscription_id: UUID | None = None,
        transaction_id: str | None = None,
        billing_period_start: datetime | None = None,
        billing_period_end: datetime | None = None,
        commit: bool = True,
    ) -> Invoice:
        """Generate a paid invoice for a completed charge.

        Raises:
            ProfileNotFoundError: If the user has no profile.
        """
        profile = self.profile_repo.get_by_id(user_id)
        if profile is None:
            raise ProfileNotFoundError("User profile not found")

        now = datetime.now(UTC)
        references: dict[str, str | None] = {}
        if payment_method == SubscriptionProvider.PAYPAL.value:
            references["paypal_transaction_id"] = transaction_id
        elif payment_method == SubscriptionProvider.LEMONSQUEEZY.value:
            references["lemonsqueezy_order_id"] = transaction_id

        invoice = self.invoice_repo.create(
            commit=commit,
            user_id=user_id,
            subscription_id=subscription_id,
            payment_method=payment_method,
            amount_cents=amount_cents,
            currency=INVOICE_CURRENCY,
            status=InvoiceStatus.PAID.value,
            plan_type=plan_type,
            plan_name=PLAN_NAMES.get(plan_type, f"{plan_type.title()} Plan"),
            customer_email=profile.email,
            customer_name=profile.full_name,
            customer_company=profile.company_name,
            billing_period_start=billing_period_start or now,
            billing_period_end=billing_period_end,
            invoice_date=now,
            paid_date=now,
            **references,
        )
        logger.info("Generated invoice %s for user %s", invoice.invoice_number, user_id)
        return invoice
