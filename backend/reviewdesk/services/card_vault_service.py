"""Keepz saved-card vault.

Saving a card is a redirect flow: a placeholder row (``card_mask = 'pending'``,
``card_token = integratorOrderId``) is written, the buyer authorizes a small
amount on Keepz, and the callback either fills the row in or removes it.
Placeholders whose callback never arrives are removed after a TTL.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.core.config import settings
from reviewdesk.models.payment_method import UserPaymentMethod
from reviewdesk.repositories.payment_method_repository import PaymentMethodRepository
from reviewdesk.services.payment_providers.keepz import KeepzProvider
from reviewdesk.services.provider_events import CardDetails

logger = logging.getLogger(__name__)


@dataclass
class CardSaveStarted:
    payment_method_id: UUID
    integrator_order_id: str
    payment_url: str


class CardVaultService:
    def __init__(self, db: Session):
        self.db = db
        self.payment_method_repo = PaymentMethodRepository(db)

    def start_card_save(
        self,
        user_id: UUID,
        nickname: str | None = None,
        success_url: str | None = None,
        fail_url: str | None = None,
    ) -> CardSaveStarted:
        """Write the placeholder and open the Keepz card-save order.

        The placeholder is removed again when the provider call fails.
        """
        provider = KeepzProvider()
        provider.ensure_configured()

        integrator_order_id = str(uuid.uuid4())
        placeholder = self.payment_method_repo.create_pending(user_id, integrator_order_id, nickname)
        try:
            payment_url = provider.create_card_save_order(integrator_order_id, success_url, fail_url)
        except Exception:
            logger.warning("Keepz card save failed for user %s; removing placeholder", user_id)
            self.payment_method_repo.delete(placeholder)
            raise

        return CardSaveStarted(
            payment_method_id=placeholder.id,  # type: ignore[arg-type]
            integrator_order_id=integrator_order_id,
            payment_url=payment_url,
        )

    def apply_card_saved(self, placeholder: UserPaymentMethod, card: CardDetails) -> UserPaymentMethod:
        """Fill the placeholder with the vaulted card; the first real card becomes default."""
        payment_method = self.payment_method_repo.update(
            placeholder,
            card_token=card.token,
            card_mask=card.mask or "Card saved",
            card_brand=card.brand or "Unknown",
            last_4=card.last_4,
            expiration_date=card.expiration_date,
        )
        if self.payment_method_repo.count_saved(payment_method.user_id) == 1:  # type: ignore[arg-type]
            payment_method = self.payment_method_repo.set_default(payment_method)
        logger.info("Saved Keepz card %s for user %s", payment_method.id, payment_method.user_id)
        return payment_method

    def apply_card_failed(self, placeholder: UserPaymentMethod) -> None:
        logger.info("Keepz card save failed; removing placeholder %s", placeholder.id)
        self.payment_method_repo.delete(placeholder)

    def cleanup_stale_pending(self, now: datetime | None = None) -> int:
        """Delete placeholders older than PENDING_CARD_TTL_HOURS."""
        cutoff = (now or datetime.now(UTC)) - timedelta(hours=settings.PENDING_CARD_TTL_HOURS)
        deleted = self.payment_method_repo.delete_stale_pending(cutoff)
        if deleted:
            logger.info("Removed %d stale pending card placeholders", deleted)
        return deleted

    def list_cards(self, user_id: UUID) -> list[UserPaymentMethod]:
        return self.payment_method_repo.get_by_user_id(user_id)
