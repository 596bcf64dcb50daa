"""PayPal subscription provider implementation.

PayPal uses billing plans and an approval redirect:
1. Create a subscription against a billing plan; PayPal returns an approve link
2. The buyer approves on PayPal
3. BILLING.SUBSCRIPTION.* and PAYMENT.SALE.* webhooks report the lifecycle
"""

import json
import logging
import re
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

PLAN_ID_PATTERN = re.compile(r"^P-[A-Z0-9]+$")
VERIFIED_STATUSES = {"SUCCESS", "SUCCESSFUL", "VERIFIED"}
TRANSMISSION_HEADERS = {
    "auth_algo": "paypal-auth-algo",
    "cert_url": "paypal-cert-url",
    "transmission_id": "paypal-transmission-id",
    "transmission_sig": "paypal-transmission-sig",
    "transmission_time": "paypal-transmission-time",
}

_SUBSCRIPTION_EVENT_KINDS = {
    "BILLING.SUBSCRIPTION.CREATED": ProviderEventKind.CREATED,
    "BILLING.SUBSCRIPTION.ACTIVATED": ProviderEventKind.ACTIVATED,
    "BILLING.SUBSCRIPTION.UPDATED": ProviderEventKind.UPDATED,
    "BILLING.SUBSCRIPTION.SUSPENDED": ProviderEventKind.UPDATED,
    "BILLING.SUBSCRIPTION.PAYMENT.FAILED": ProviderEventKind.UPDATED,
    "BILLING.SUBSCRIPTION.CANCELLED": ProviderEventKind.CANCELLED,
    "BILLING.SUBSCRIPTION.EXPIRED": ProviderEventKind.EXPIRED,
}

# PayPal subscription status -> event kind, for polling
_STATUS_KINDS = {
    "APPROVAL_PENDING": ProviderEventKind.CREATED,
    "APPROVED": ProviderEventKind.CREATED,
    "ACTIVE": ProviderEventKind.ACTIVATED,
    "SUSPENDED": ProviderEventKind.UPDATED,
    "CANCELLED": ProviderEventKind.CANCELLED,
    "EXPIRED": ProviderEventKind.EXPIRED,
}


def parse_paypal_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _amount_to_cents(value: str | None) -> int | None:
    if value in (None, ""):
        return None
    return int(round(float(value) * 100))


class PayPalProvider(SubscriptionProviderBase):
    """PayPal Subscriptions API provider."""

    supports_polling = True

    def __init__(
        self,
        client_id: str | None = None,
        secret: str | None = None,
        base_url: str | None = None,
        webhook_id: str | None = None,
    ):
        self.client_id = client_id or settings.paypal_client_id
        self.secret = secret or settings.paypal_secret
        self.base_url = (base_url or settings.paypal_base_url).rstrip("/")
        self.webhook_id = webhook_id or settings.paypal_webhook_id
        self.verify_webhooks = settings.paypal_verify_webhooks

    @property
    def provider_name(self) -> SubscriptionProvider:
        return SubscriptionProvider.PAYPAL

    def ensure_configured(self, request: CheckoutRequest | None = None) -> None:
        if not self.client_id or not self.secret:
            raise ConfigurationError("PayPal credentials are not configured")
        if request is not None:
            self.resolve_plan_id(request.plan_type, request.plan_id)

    def resolve_plan_id(self, plan_type: str, override: str | None = None) -> str:
        """Pick the PayPal billing plan for a plan type, honoring a validated override."""
        if override:
            if not PLAN_ID_PATTERN.match(override):
                raise ValueError("Invalid PayPal plan_id format")
            return override
        plan_id = settings.paypal_plan_ids.get(plan_type)
        if not plan_id:
            raise ConfigurationError(f"No PayPal plan configured for plan type '{plan_type}'")
        return plan_id

    def _get_access_token(self) -> str:
        """Obtain an OAuth client-credentials token."""
        self.ensure_configured()
        response = send_json_request(
            "PayPal",
            "POST",
            f"{self.base_url}/v1/oauth2/token",
            headers={"Accept": "application/json"},
            form_body={"grant_type": "client_credentials"},
            auth=(self.client_id, self.secret),
        )
        token = response.get("access_token")
        if not token:
            raise ConfigurationError("PayPal did not return an access token")
        return str(token)

    def _make_request(
        self,
        method: str,
        endpoint: str,
        data: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated HTTP request to the PayPal API."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {self._get_access_token()}",
        }
        if request_id:
            headers["PayPal-Request-Id"] = request_id
        return send_json_request(
            "PayPal", method, f"{self.base_url}{endpoint}", headers=headers, json_body=data
        )

    def create_subscription(self, request: CheckoutRequest) -> CheckoutResult:
        """Create a PayPal subscription and return its approval link."""
        plan_id = self.resolve_plan_id(request.plan_type, request.plan_id)
        return_url = request.return_url or f"{settings.APP_PUBLIC_URL}/payment/success"
        cancel_url = request.cancel_url or f"{settings.APP_PUBLIC_URL}/payment/cancel"

        body: dict[str, Any] = {
            "plan_id": plan_id,
            "custom_id": str(request.subscription_id),
            "application_context": {
                "brand_name": settings.APP_NAME,
                "user_action": "SUBSCRIBE_NOW",
                "shipping_preference": "NO_SHIPPING",
                "return_url": return_url,
                "cancel_url": cancel_url,
            },
        }
        if request.customer_email:
            body["subscriber"] = {"email_address": request.customer_email}

        response = self._make_request(
            "POST", "/v1/billing/subscriptions", body, request_id=str(request.subscription_id)
        )
        approval_url = next(
            (link.get("href") for link in response.get("links", []) if link.get("rel") == "approve"),
            None,
        )
        return CheckoutResult(
            provider_reference=response.get("id"),
            approval_url=approval_url,
            provider_status=response.get("status"),
            raw=response,
        )

    def cancel_subscription(self, subscription: Subscription, reason: str | None) -> None:
        if not subscription.provider_subscription_id:
            return
        self._make_request(
            "POST",
            f"/v1/billing/subscriptions/{subscription.provider_subscription_id}/cancel",
            {"reason": reason or "User requested cancellation"},
            request_id=str(uuid.uuid4()),
        )

    def refund_transaction(
        self, transaction: PaymentTransaction, reason: str | None
    ) -> RefundResult:
        """Refund a subscription sale."""
        body = {
            "amount": {
                "value": f"{int(transaction.amount_cents) / 100:.2f}",
                "currency_code": transaction.currency,
            },
            "note_to_payer": reason or "Refund within the refund window",
        }
        response = self._make_request(
            "POST",
            f"/v2/payments/sale/{transaction.provider_transaction_id}/refund",
            body,
            request_id=str(uuid.uuid4()),
        )
        return RefundResult(
            provider_refund_id=response.get("id"),
            status=str(response.get("state") or response.get("status") or "completed").lower(),
            raw=response,
        )

    def verify_webhook_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        """Verify a webhook through PayPal's verify-webhook-signature API."""
        if not self.verify_webhooks:
            logger.warning("PayPal webhook verification is disabled")
            return True
        if not self.webhook_id:
            logger.error("PayPal webhook id is not configured; rejecting webhook")
            return False

        lowered = {k.lower(): v for k, v in headers.items()}
        body: dict[str, Any] = {
            key: lowered.get(header) for key, header in TRANSMISSION_HEADERS.items()
        }
        if not all(body.values()):
            return False
        try:
            body["webhook_event"] = json.loads(payload)
        except ValueError:
            return False
        body["webhook_id"] = self.webhook_id

        response = self._make_request("POST", "/v1/notifications/verify-webhook-signature", body)
        return str(response.get("verification_status", "")).upper() in VERIFIED_STATUSES

    def parse_webhook(self, payload: dict[str, Any]) -> ProviderEvent:
        """Parse a PayPal webhook event envelope."""
        event_type = str(payload.get("event_type", ""))
        resource = payload.get("resource") or {}
        event_id = payload.get("id")

        if event_type in _SUBSCRIPTION_EVENT_KINDS:
            billing_info = resource.get("billing_info") or {}
            custom_id = resource.get("custom_id")
            return ProviderEvent(
                kind=_SUBSCRIPTION_EVENT_KINDS[event_type],
                provider=self.provider_name.value,
                event_type=event_type,
                provider_event_id=event_id,
                local_subscription_id=_parse_uuid(custom_id),
                provider_subscription_id=resource.get("id"),
                provider_status=resource.get("status"),
                period_end=parse_paypal_time(billing_info.get("next_billing_time")),
                raw=payload,
            )

        if event_type == "PAYMENT.SALE.COMPLETED":
            amount = resource.get("amount") or {}
            return ProviderEvent(
                kind=ProviderEventKind.PAYMENT_COMPLETED,
                provider=self.provider_name.value,
                event_type=event_type,
                provider_event_id=event_id,
                local_subscription_id=_parse_uuid(resource.get("custom")),
                provider_subscription_id=resource.get("billing_agreement_id"),
                transaction_id=resource.get("id"),
                amount_cents=_amount_to_cents(amount.get("total")),
                currency=amount.get("currency"),
                raw=payload,
            )

        return ProviderEvent.ignored(
            self.provider_name.value, event_type or "paypal.unknown", "unhandled event type", payload
        )

    def fetch_subscription(self, subscription: Subscription) -> ProviderEvent:
        """Read the subscription from PayPal and express it as an event."""
        if not subscription.provider_subscription_id:
            raise ValueError("Subscription has no PayPal subscription id")
        response = self._make_request(
            "GET", f"/v1/billing/subscriptions/{subscription.provider_subscription_id}"
        )
        status = str(response.get("status", "")).upper()
        billing_info = response.get("billing_info") or {}
        kind = _STATUS_KINDS.get(status, ProviderEventKind.UPDATED)
        return ProviderEvent(
            kind=kind,
            provider=self.provider_name.value,
            event_type=f"paypal_sync_{status.lower() or 'unknown'}",
            local_subscription_id=subscription.id,  # type: ignore[arg-type]
            provider_subscription_id=response.get("id"),
            provider_status=status,
            period_end=parse_paypal_time(billing_info.get("next_billing_time")),
            raw=response,
        )


def _parse_uuid(value: Any) -> uuid.UUID | None:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None
