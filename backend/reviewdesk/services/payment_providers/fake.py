"""Fake subscription provider for local development and demos.

Subscriptions activate immediately with a 30-day period and no external call.
Webhooks are accepted only in DEBUG mode so the reconciliation path can be
driven by hand.
"""

import logging
import time
import uuid
from collections.abc import Mapping
from typing import Any

from reviewdesk.core.config import settings
from reviewdesk.models.payment_transaction import PaymentTransaction
from reviewdesk.models.subscription import Subscription, SubscriptionProvider
from reviewdesk.services.payment_provider import (
    CheckoutRequest,
    CheckoutResult,
    RefundResult,
    SubscriptionProviderBase,
)
from reviewdesk.services.provider_events import ProviderEvent, ProviderEventKind

logger = logging.getLogger(__name__)

FAKE_PERIOD_DAYS = 30


class FakeProvider(SubscriptionProviderBase):
    """Provider that settles every subscription synchronously."""

    @property
    def provider_name(self) -> SubscriptionProvider:
        return SubscriptionProvider.FAKE

    def ensure_configured(self, request: CheckoutRequest | None = None) -> None:
        return None

    def create_subscription(self, request: CheckoutRequest) -> CheckoutResult:
        reference = f"fake-sub-{int(time.time() * 1000)}"
        logger.info("Fake subscription %s created for user %s", reference, request.user_id)
        return CheckoutResult(
            provider_reference=reference,
            approval_url=None,
            provider_status="ACTIVE",
            raw={"period_days": FAKE_PERIOD_DAYS},
        )

    def cancel_subscription(self, subscription: Subscription, reason: str | None) -> None:
        return None

    def refund_transaction(
        self, transaction: PaymentTransaction, reason: str | None
    ) -> RefundResult:
        return RefundResult(provider_refund_id=None, status="local")

    def verify_webhook_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        return settings.DEBUG

    def parse_webhook(self, payload: dict[str, Any]) -> ProviderEvent:
        """Parse ``{"event_type": <kind>, "subscription_id": <local id>}``."""
        event_type = str(payload.get("event_type", ""))
        try:
            kind = ProviderEventKind(event_type)
        except ValueError:
            return ProviderEvent.ignored(
                self.provider_name.value, event_type or "fake.unknown", "unhandled event type", payload
            )

        local_id = None
        if payload.get("subscription_id"):
            try:
                local_id = uuid.UUID(str(payload["subscription_id"]))
            except ValueError:
                local_id = None

        return ProviderEvent(
            kind=kind,
            provider=self.provider_name.value,
            event_type=f"fake_{event_type}",
            provider_event_id=payload.get("id"),
            local_subscription_id=local_id,
            provider_subscription_id=payload.get("provider_subscription_id"),
            period_days=FAKE_PERIOD_DAYS if kind == ProviderEventKind.ACTIVATED else None,
            transaction_id=payload.get("transaction_id"),
            amount_cents=payload.get("amount_cents"),
            currency=payload.get("currency"),
            raw=payload,
        )
