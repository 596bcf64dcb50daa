"""Keepz subscription provider implementation.

Keepz is a Georgian card acquirer. Every request and callback travels as an
encrypted envelope (see ``keepz_crypto``):
1. Create an order; Keepz returns an encrypted ``urlForQR`` payment page
2. The buyer pays (and Keepz saves the card for the recurring plan)
3. Keepz posts a callback keyed by our ``integratorOrderId``

The same order endpoint also vaults cards (amount 1 authorization) and
charges a previously saved card token.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any

from reviewdesk.core.config import settings
from reviewdesk.core.errors import ConfigurationError, EnvelopeError, ProviderError
from reviewdesk.models.payment_transaction import PaymentTransaction
from reviewdesk.models.subscription import Subscription, SubscriptionProvider
from reviewdesk.services.keepz_crypto import RSAPadding, decrypt_envelope, encrypt_envelope
from reviewdesk.services.payment_provider import (
    CheckoutRequest,
    CheckoutResult,
    RefundResult,
    SubscriptionProviderBase,
    send_json_request,
)
from reviewdesk.services.provider_events import CardDetails, ProviderEvent, ProviderEventKind

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_DAYS = 30

ACTIVE_STATUSES = {"COMPLETED", "SUCCESS", "ACTIVE"}
FAILED_STATUSES = {"FAILED", "DECLINED"}
CANCELLED_STATUSES = {"CANCELLED", "REVOKED"}
CARD_SUCCESS_STATUSES = {"SUCCESS", "COMPLETED", "ACTIVE", "PAID"}

# Keepz reports a padding mismatch as an error body rather than a distinct status
_DECRYPT_ERROR_MARKERS = ("decrypt", "6010")


def _is_decrypt_error(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _DECRYPT_ERROR_MARKERS)


def _require_object(value: Any, source: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise EnvelopeError(f"Keepz {source} does not contain a JSON object")
    return value


def _amount_to_cents(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(round(float(value) * 100))
    except (TypeError, ValueError):
        return None


def extract_card_details(data: dict[str, Any]) -> CardDetails | None:
    """Pull the saved card out of a callback; Keepz uses several field layouts."""
    card_info = data.get("cardInfo") or {}
    card = data.get("card") or {}
    token = (
        card_info.get("token")
        or data.get("cardToken")
        or data.get("savedCardToken")
        or data.get("token")
        or card.get("token")
    )
    if not token:
        return None
    return CardDetails(
        token=str(token),
        mask=card_info.get("cardMask")
        or card_info.get("maskedPan")
        or card.get("cardMask")
        or card.get("maskedPan")
        or data.get("maskedPan"),
        brand=card_info.get("cardBrand")
        or card_info.get("brand")
        or card.get("cardBrand")
        or card.get("brand")
        or data.get("cardBrand"),
        expiration_date=card_info.get("expirationDate") or card.get("expirationDate"),
    )


def card_save_event(event: ProviderEvent) -> ProviderEvent:
    """Reinterpret a callback as the outcome of a card-save order."""
    status = (event.provider_status or "").upper()
    if status in CARD_SUCCESS_STATUSES:
        if event.card is None:
            # Keepz may resend the callback with the token; keep the row pending
            return ProviderEvent.ignored(
                event.provider, event.event_type, "card save succeeded without a card token", event.raw
            )
        kind = ProviderEventKind.CARD_SAVED
    else:
        kind = ProviderEventKind.CARD_FAILED
    return ProviderEvent(
        kind=kind,
        provider=event.provider,
        event_type=event.event_type,
        provider_event_id=event.provider_event_id,
        keepz_order_id=event.keepz_order_id,
        provider_status=event.provider_status,
        card=event.card,
        raw=event.raw,
    )


class KeepzProvider(SubscriptionProviderBase):
    """Keepz ecommerce gateway provider."""

    def __init__(
        self,
        integrator_id: str | None = None,
        receiver_id: str | None = None,
        public_key: str | None = None,
        private_key: str | None = None,
        base_url: str | None = None,
    ):
        self.integrator_id = integrator_id or settings.keepz_integrator_id
        self.receiver_id = receiver_id or settings.keepz_receiver_id
        self.public_key = public_key or settings.keepz_public_key
        self.private_key = private_key or settings.keepz_private_key
        self.base_url = (base_url or settings.keepz_base_url).rstrip("/")
        self.currency = settings.keepz_currency

    @property
    def provider_name(self) -> SubscriptionProvider:
        return SubscriptionProvider.KEEPZ

    @property
    def callback_url(self) -> str:
        return f"{settings.API_PUBLIC_URL}/v1/webhooks/keepz"

    def ensure_configured(self, request: CheckoutRequest | None = None) -> None:
        if not self.integrator_id or not self.receiver_id:
            raise ConfigurationError("Keepz integrator or receiver id is not configured")
        if not self.public_key or not self.private_key:
            raise ConfigurationError("Keepz configuration missing - public/private keys not set")
        if request is not None and request.amount_cents is None:
            raise ConfigurationError(f"No billing plan found for plan_type: {request.plan_type}")

    def _post_encrypted(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Send an encrypted request and return the decrypted response.

        Keepz accepts one RSA padding per integrator; when it reports that it
        could not decrypt the keys, the request is retried with the other one.
        """
        self.ensure_configured()
        url = f"{self.base_url}{endpoint}"
        last_error: ProviderError | None = None

        for mode in (RSAPadding.OAEP, RSAPadding.PKCS1):
            envelope = encrypt_envelope(payload, self.public_key, self.integrator_id, rsa_padding=mode)
            try:
                response = send_json_request(
                    "Keepz", "POST", url, headers={"Content-Type": "application/json"}, json_body=envelope
                )
            except ProviderError as e:
                if _is_decrypt_error(e.body or str(e)):
                    logger.info("Keepz could not decrypt %s padding, retrying", mode.value)
                    last_error = e
                    continue
                raise

            message = response.get("message")
            if message and response.get("statusCode"):
                if _is_decrypt_error(str(message)):
                    logger.info("Keepz could not decrypt %s padding, retrying", mode.value)
                    last_error = ProviderError(f"Keepz API error: {message}")
                    continue
                raise ProviderError(f"Keepz API error: {message}", body=json.dumps(response))

            if response.get("encryptedData") and response.get("encryptedKeys"):
                decrypted = decrypt_envelope(
                    response["encryptedData"], response["encryptedKeys"], self.private_key
                )
                return _require_object(decrypted, "response")
            return response

        raise last_error or ProviderError("Keepz could not decrypt the request")

    def _order_payload(self, order_id: str, amount: float) -> dict[str, Any]:
        return {
            "amount": amount,
            "receiverId": self.receiver_id,
            "receiverType": "BRANCH",
            "integratorId": self.integrator_id,
            "integratorOrderId": order_id,
            "currency": self.currency,
            "callbackUri": self.callback_url,
            "language": "EN",
        }

    def create_subscription(self, request: CheckoutRequest) -> CheckoutResult:
        """Create a recurring order, or charge a saved card when a token is given."""
        self.ensure_configured(request)
        if not request.order_id:
            raise ValueError("Keepz orders require an integratorOrderId")
        price = int(request.amount_cents or 0) / 100

        if request.card_token:
            payload = self._order_payload(request.order_id, price)
            payload["cardToken"] = request.card_token
            payload["saveCard"] = False
        else:
            # Recurring orders carry amount 0; the charge lives in subscriptionPlan
            payload = self._order_payload(request.order_id, 0)
            payload["saveCard"] = True
            payload["subscriptionPlan"] = {
                "interval": "MONTHLY",
                "intervalCount": 1,
                "amount": price,
            }
            payload["successRedirectUri"] = (
                request.return_url or f"{settings.APP_PUBLIC_URL}/billing-success"
            )
            payload["failRedirectUri"] = request.cancel_url or f"{settings.APP_PUBLIC_URL}/checkout"

        decrypted = self._post_encrypted("/api/integrator/order", payload)
        approval_url = decrypted.get("urlForQR")
        if not approval_url and not request.card_token:
            raise ProviderError("No checkout URL returned from Keepz")

        return CheckoutResult(
            provider_reference=decrypted.get("orderId"),
            approval_url=approval_url,
            provider_status=decrypted.get("status"),
            keepz_subscription_id=decrypted.get("subscriptionId"),
            raw=decrypted,
        )

    def create_card_save_order(
        self,
        order_id: str,
        success_url: str | None = None,
        fail_url: str | None = None,
    ) -> str:
        """Open a 1-unit authorization order that vaults the card; returns the payment URL."""
        self.ensure_configured()
        payload = self._order_payload(order_id, 1)
        payload["saveCard"] = True
        payload["directLinkProvider"] = "CREDO"
        payload["successRedirectUri"] = (
            success_url or f"{settings.APP_PUBLIC_URL}/payment-methods?saved=true"
        )
        payload["failRedirectUri"] = fail_url or f"{settings.APP_PUBLIC_URL}/payment-methods?saved=false"

        decrypted = self._post_encrypted("/api/integrator/order", payload)
        payment_url = decrypted.get("urlForQR")
        if not payment_url:
            raise ProviderError("No payment URL returned from Keepz")
        return str(payment_url)

    def cancel_subscription(self, subscription: Subscription, reason: str | None) -> None:
        if not subscription.keepz_subscription_id:
            logger.info("Keepz subscription %s has no remote id; cancelling locally", subscription.id)
            return
        self._post_encrypted(
            "/api/integrator/subscription/revoke",
            {
                "subscriptionId": subscription.keepz_subscription_id,
                "integratorId": self.integrator_id,
            },
        )

    def refund_transaction(
        self, transaction: PaymentTransaction, reason: str | None
    ) -> RefundResult:
        # Keepz refunds are settled by support; the refund is recorded locally only
        return RefundResult(provider_refund_id=None, status="local")

    def verify_webhook_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        # Callbacks are authenticated by the envelope itself
        return True

    def decode_webhook_body(self, payload: bytes) -> dict[str, Any] | None:
        """Decode a callback, decrypting it when it arrives as an envelope.

        Empty and non-JSON bodies return None so they are acknowledged with 200
        and Keepz does not keep retrying them.
        """
        if not payload or not payload.strip():
            return None
        try:
            body = json.loads(payload)
        except ValueError:
            logger.warning("Keepz callback body is not JSON")
            return None
        if not isinstance(body, dict):
            return None
        if not body.get("encryptedData") or not body.get("encryptedKeys"):
            logger.warning(
                "Accepting unencrypted Keepz callback for order %s", body.get("integratorOrderId")
            )
            return body
        decrypted = decrypt_envelope(body["encryptedData"], body["encryptedKeys"], self.private_key)
        return _require_object(decrypted, "callback")

    def parse_webhook(self, payload: dict[str, Any]) -> ProviderEvent:
        """Parse a decrypted callback into a subscription event.

        Card-save callbacks use the same shape; callers that find a pending
        card for the order reinterpret the event with ``card_save_event``.
        """
        order_id = payload.get("integratorOrderId")
        status = str(payload.get("status") or "").upper()
        event_type = f"keepz_{status.lower() or 'callback'}"
        if not order_id:
            return ProviderEvent.ignored(
                self.provider_name.value, event_type, "missing integratorOrderId", payload
            )

        if status in ACTIVE_STATUSES:
            kind = ProviderEventKind.ACTIVATED
        elif status in FAILED_STATUSES:
            kind = ProviderEventKind.FAILED
        elif status in CANCELLED_STATUSES:
            kind = ProviderEventKind.CANCELLED
        else:
            kind = ProviderEventKind.UPDATED

        card = extract_card_details(payload)
        keepz_order_ref = payload.get("orderId")
        return ProviderEvent(
            kind=kind,
            provider=self.provider_name.value,
            event_type=event_type,
            provider_event_id=str(keepz_order_ref or order_id),
            keepz_order_id=str(order_id),
            provider_subscription_id=str(keepz_order_ref) if keepz_order_ref else None,
            provider_status=status or None,
            period_days=DEFAULT_PERIOD_DAYS if kind == ProviderEventKind.ACTIVATED else None,
            keepz_subscription_id=payload.get("subscriptionId"),
            card_token=card.token if card else None,
            transaction_id=str(keepz_order_ref) if keepz_order_ref and kind == ProviderEventKind.ACTIVATED else None,
            amount_cents=_amount_to_cents(payload.get("amount")),
            currency=payload.get("currency"),
            card=card,
            raw=payload,
        )
