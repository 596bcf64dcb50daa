"""LemonSqueezy subscription provider implementation.

LemonSqueezy is a merchant of record with hosted checkouts:
1. Create a checkout for the plan's variant, carrying our ids as custom data
2. The buyer pays on the hosted checkout
3. order_created / subscription_* webhooks report the outcome

Webhooks are discriminated by ``meta.event_name`` and signed with HMAC-SHA256.
"""

import hashlib
import hmac
import logging
import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from reviewdesk.core.config import settings
from reviewdesk.core.errors import ConfigurationError
from reviewdesk.models.payment_transaction import PaymentTransaction
from reviewdesk.models.subscription import Subscription, SubscriptionProvider
from reviewdesk.services.payment_provider import (
    CheckoutRequest,
    CheckoutResult,
    RefundResult,
    SubscriptionProviderBase,
    send_json_request,
)
from reviewdesk.services.provider_events import ProviderEvent, ProviderEventKind

logger = logging.getLogger(__name__)

LEMONSQUEEZY_API_URL = "https://api.lemonsqueezy.com"

_EVENT_KINDS = {
    "order_created": ProviderEventKind.PAYMENT_COMPLETED,
    "subscription_created": ProviderEventKind.ACTIVATED,
    "subscription_updated": ProviderEventKind.UPDATED,
    "subscription_resumed": ProviderEventKind.UPDATED,
    "subscription_cancelled": ProviderEventKind.CANCELLED,
    "subscription_expired": ProviderEventKind.EXPIRED,
}


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _parse_uuid(value: Any) -> uuid.UUID | None:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class LemonSqueezyProvider(SubscriptionProviderBase):
    """LemonSqueezy provider using the JSON:API REST interface."""

    cancels_at_period_end = True

    def __init__(
        self,
        api_key: str | None = None,
        store_id: str | None = None,
        webhook_secret: str | None = None,
        variant_ids: dict[str, str] | None = None,
    ):
        self.api_key = api_key or settings.lemonsqueezy_api_key
        self.store_id = store_id or settings.lemonsqueezy_store_id
        self.webhook_secret = webhook_secret or settings.lemonsqueezy_webhook_secret
        self.variant_ids = variant_ids if variant_ids is not None else settings.lemonsqueezy_product_ids

    @property
    def provider_name(self) -> SubscriptionProvider:
        return SubscriptionProvider.LEMONSQUEEZY

    def ensure_configured(self, request: CheckoutRequest | None = None) -> None:
        if not self.api_key or not self.store_id:
            raise ConfigurationError("LemonSqueezy credentials are not configured")
        if request is not None and not self.variant_ids.get(request.plan_type):
            raise ConfigurationError(
                f"No LemonSqueezy variant configured for plan type '{request.plan_type}'"
            )

    def _make_request(
        self,
        method: str,
        endpoint: str,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an HTTP request to the LemonSqueezy API."""
        self.ensure_configured()
        headers = {
            "Accept": "application/vnd.api+json",
            "Content-Type": "application/vnd.api+json",
            "Authorization": f"Bearer {self.api_key}",
        }
        return send_json_request(
            "LemonSqueezy", method, f"{LEMONSQUEEZY_API_URL}{endpoint}", headers=headers, json_body=data
        )

    def create_subscription(self, request: CheckoutRequest) -> CheckoutResult:
        """Create a hosted checkout for the plan's variant."""
        self.ensure_configured(request)
        variant_id = self.variant_ids[request.plan_type]
        redirect_url = request.return_url or f"{settings.APP_PUBLIC_URL}/payment/success"

        checkout_data: dict[str, Any] = {
            "custom": {
                "user_id": str(request.user_id),
                "subscription_id": str(request.subscription_id),
            },
        }
        if request.customer_email:
            checkout_data["email"] = request.customer_email
        if request.customer_name:
            checkout_data["name"] = request.customer_name

        body = {
            "data": {
                "type": "checkouts",
                "attributes": {
                    "checkout_data": checkout_data,
                    "product_options": {"redirect_url": redirect_url},
                },
                "relationships": {
                    "store": {"data": {"type": "stores", "id": str(self.store_id)}},
                    "variant": {"data": {"type": "variants", "id": str(variant_id)}},
                },
            }
        }
        response = self._make_request("POST", "/v1/checkouts", body)
        data = response.get("data") or {}
        # The subscription id only exists after payment; it arrives by webhook
        return CheckoutResult(
            provider_reference=None,
            approval_url=(data.get("attributes") or {}).get("url"),
            raw=response,
        )

    def cancel_subscription(self, subscription: Subscription, reason: str | None) -> None:
        if not subscription.provider_subscription_id:
            return
        self._make_request("DELETE", f"/v1/subscriptions/{subscription.provider_subscription_id}")

    def refund_transaction(
        self, transaction: PaymentTransaction, reason: str | None
    ) -> RefundResult:
        """Refund an order in full."""
        body = {
            "data": {
                "type": "orders",
                "id": str(transaction.provider_transaction_id),
                "attributes": {"amount": int(transaction.amount_cents)},
            }
        }
        response = self._make_request(
            "POST", f"/v1/orders/{transaction.provider_transaction_id}/refund", body
        )
        data = response.get("data") or {}
        attributes = data.get("attributes") or {}
        return RefundResult(
            provider_refund_id=data.get("id"),
            status=str(attributes.get("status") or "refunded"),
            raw=response,
        )

    def verify_webhook_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        """Verify the X-Signature HMAC-SHA256 of the raw body."""
        if not self.webhook_secret:
            return False
        signature = next((v for k, v in headers.items() if k.lower() == "x-signature"), "")
        if not signature:
            return False
        expected = hmac.new(
            self.webhook_secret.encode(),
            payload,
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected, signature)

    def parse_webhook(self, payload: dict[str, Any]) -> ProviderEvent:
        """Parse a LemonSqueezy webhook, discriminated by meta.event_name."""
        meta = payload.get("meta") or {}
        event_name = str(meta.get("event_name", ""))
        custom_data = meta.get("custom_data") or {}
        data = payload.get("data") or {}
        attributes = data.get("attributes") or {}

        kind = _EVENT_KINDS.get(event_name)
        if kind is None:
            return ProviderEvent.ignored(
                self.provider_name.value, event_name or "lemonsqueezy.unknown", "unhandled event type", payload
            )

        event = ProviderEvent(
            kind=kind,
            provider=self.provider_name.value,
            event_type=event_name,
            provider_event_id=meta.get("event_id"),
            local_subscription_id=_parse_uuid(custom_data.get("subscription_id")),
            provider_status=attributes.get("status"),
            raw=payload,
        )

        if kind == ProviderEventKind.PAYMENT_COMPLETED:
            event.transaction_id = str(data.get("id")) if data.get("id") is not None else None
            event.amount_cents = attributes.get("total")
            event.currency = attributes.get("currency")
            event.period_end = _parse_time(attributes.get("renews_at") or attributes.get("renewals_at"))
            return event

        event.provider_subscription_id = str(data.get("id")) if data.get("id") is not None else None
        if kind == ProviderEventKind.CANCELLED:
            event.period_end = _parse_time(attributes.get("ends_at"))
        else:
            event.period_end = _parse_time(attributes.get("renews_at"))
        return event
