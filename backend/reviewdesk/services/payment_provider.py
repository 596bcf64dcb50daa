"""Subscription provider abstraction layer.

Supports multiple subscription providers (PayPal, LemonSqueezy, Keepz, fake).
Each adapter turns local subscription intents into provider API calls and
provider notifications into ``ProviderEvent`` values.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

import httpx

from reviewdesk.core.errors import ProviderError
from reviewdesk.models.payment_transaction import PaymentTransaction
from reviewdesk.models.subscription import Subscription, SubscriptionProvider
from reviewdesk.services.provider_events import ProviderEvent

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0


@dataclass
class CheckoutRequest:
    """Everything an adapter needs to open a subscription with its provider."""

    subscription_id: UUID
    user_id: UUID
    plan_type: str
    customer_email: str | None = None
    customer_name: str | None = None
    return_url: str | None = None
    cancel_url: str | None = None
    plan_id: str | None = None
    amount_cents: int | None = None
    currency: str | None = None
    order_id: str | None = None
    card_token: str | None = None


@dataclass
class CheckoutResult:
    """Provider response to a create-subscription call."""

    provider_reference: str | None
    approval_url: str | None = None
    # Set when the provider settled the payment synchronously
    provider_status: str | None = None
    keepz_subscription_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class RefundResult:
    provider_refund_id: str | None
    status: str
    raw: dict[str, Any] = field(default_factory=dict)


def send_json_request(
    provider: str,
    method: str,
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
    json_body: Any = None,
    form_body: Mapping[str, str] | None = None,
    auth: tuple[str, str] | None = None,
) -> dict[str, Any]:
    """Send one request to a provider API and return the decoded JSON body.

    Non-2xx responses and transport failures raise ``ProviderError``. There is
    a single attempt; retry policy belongs to the caller.
    """
    try:
        with httpx.Client(timeout=REQUEST_TIMEOUT) as client:
            response = client.request(
                method,
                url,
                headers=dict(headers or {}),
                json=json_body,
                data=form_body,
                auth=auth,
            )
    except httpx.HTTPError as e:
        logger.warning("%s request %s %s failed: %s", provider, method, url, e)
        raise ProviderError(f"{provider} API request failed: {e}") from e

    if response.status_code >= 400:
        body = response.text
        logger.warning(
            "%s request %s %s returned %d: %s", provider, method, url, response.status_code, body[:500]
        )
        raise ProviderError(
            f"{provider} API error {response.status_code}: {body[:200]}",
            status_code=response.status_code,
            body=body,
        )

    if response.status_code == 204 or not response.content:
        return {}
    try:
        result = response.json()
    except ValueError:
        return {"raw": response.text}
    return result if isinstance(result, dict) else {"data": result}


class SubscriptionProviderBase(ABC):
    """Abstract base class for subscription providers."""

    # Provider keeps the subscription running until the paid period ends
    cancels_at_period_end = False
    # Provider exposes the subscription for fetch_subscription
    supports_polling = False

    @property
    @abstractmethod
    def provider_name(self) -> SubscriptionProvider:
        """Return the provider enum value."""
        pass  # pragma: no cover

    @abstractmethod
    def ensure_configured(self, request: CheckoutRequest | None = None) -> None:
        """Raise ConfigurationError when credentials or the plan mapping are missing."""
        pass  # pragma: no cover

    @abstractmethod
    def create_subscription(self, request: CheckoutRequest) -> CheckoutResult:
        """Open a subscription / checkout with the provider."""
        pass  # pragma: no cover

    @abstractmethod
    def cancel_subscription(self, subscription: Subscription, reason: str | None) -> None:
        """Cancel the provider side of a subscription."""
        pass  # pragma: no cover

    @abstractmethod
    def refund_transaction(
        self, transaction: PaymentTransaction, reason: str | None
    ) -> RefundResult:
        """Refund a completed charge."""
        pass  # pragma: no cover

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        """Verify that a webhook request came from the provider."""
        pass  # pragma: no cover

    def decode_webhook_body(self, payload: bytes) -> dict[str, Any] | None:
        """Decode a webhook body; None means acknowledge without processing."""
        try:
            result = json.loads(payload)
        except ValueError:
            raise ValueError("Invalid JSON payload") from None
        if not isinstance(result, dict):
            raise ValueError("Webhook body must be a JSON object")
        return result

    @abstractmethod
    def parse_webhook(self, payload: dict[str, Any]) -> ProviderEvent:
        """Parse a webhook payload into a normalized event."""
        pass  # pragma: no cover

    def fetch_subscription(self, subscription: Subscription) -> ProviderEvent:
        """Poll the provider for the current state of a subscription."""
        raise ValueError(f"Polling is not supported for provider {self.provider_name.value}")


def get_subscription_provider(provider: SubscriptionProvider | str) -> SubscriptionProviderBase:
    """Factory function to get the appropriate subscription provider."""
    from reviewdesk.services.payment_providers.fake import FakeProvider
    from reviewdesk.services.payment_providers.keepz import KeepzProvider
    from reviewdesk.services.payment_providers.lemonsqueezy import LemonSqueezyProvider
    from reviewdesk.services.payment_providers.paypal import PayPalProvider

    providers: dict[SubscriptionProvider, type[SubscriptionProviderBase]] = {
        SubscriptionProvider.PAYPAL: PayPalProvider,
        SubscriptionProvider.LEMONSQUEEZY: LemonSqueezyProvider,
        SubscriptionProvider.KEEPZ: KeepzProvider,
        SubscriptionProvider.FAKE: FakeProvider,
    }

    try:
        key = SubscriptionProvider(provider)
    except ValueError:
        raise ValueError(f"Unsupported subscription provider: {provider}") from None
    provider_class = providers.get(key)
    if not provider_class:
        raise ValueError(f"Unsupported subscription provider: {provider}")

    return provider_class()
