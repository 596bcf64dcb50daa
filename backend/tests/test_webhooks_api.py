"""Tests for the provider webhook endpoint."""

import hashlib
import hmac
import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from reviewdesk.core.config import settings
from reviewdesk.main import app
from reviewdesk.models.subscription import SubscriptionStatus
from reviewdesk.repositories.subscription_repository import SubscriptionRepository
from reviewdesk.repositories.user_plan_repository import UserPlanRepository
from tests.conftest import USER_ID


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


def _pending(db, provider="fake", **fields):
    return SubscriptionRepository(db).create(
        user_id=USER_ID,
        plan_type="starter",
        provider=provider,
        payment_method=provider,
        status=SubscriptionStatus.PENDING.value,
        **fields,
    )


class TestWebhookRouting:
    def test_unknown_provider(self, client):
        response = client.post("/v1/webhooks/stripe", content=b"{}")
        assert response.status_code == 404
        assert response.json() == {"error": "Unknown provider: stripe"}

    def test_fake_webhook_rejected_outside_debug(self, client):
        with patch.object(settings, "DEBUG", False):
            response = client.post("/v1/webhooks/fake", json={"event_type": "activated"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid signature"}

    def test_invalid_json(self, client):
        with patch.object(settings, "DEBUG", True):
            response = client.post("/v1/webhooks/fake", content=b"{not json")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON payload"}

    def test_non_object_body(self, client):
        with patch.object(settings, "DEBUG", True):
            response = client.post("/v1/webhooks/fake", content=b"[1, 2]")
        assert response.status_code == 400
        assert response.json() == {"error": "Webhook body must be a JSON object"}


class TestFakeWebhook:
    def test_activation(self, client, db_session):
        subscription = _pending(db_session)
        with patch.object(settings, "DEBUG", True):
            response = client.post(
                "/v1/webhooks/fake",
                json={"event_type": "activated", "subscription_id": str(subscription.id)},
            )

        assert response.status_code == 200
        assert response.json() == {
            "status": "processed",
            "kind": "activated",
            "subscription_id": str(subscription.id),
        }
        db_session.refresh(subscription)
        assert subscription.status == SubscriptionStatus.ACTIVE.value
        assert UserPlanRepository(db_session).get_by_user_id(USER_ID) is not None

    def test_unmatched_event_is_acknowledged(self, client):
        with patch.object(settings, "DEBUG", True):
            response = client.post(
                "/v1/webhooks/fake",
                json={"event_type": "cancelled", "subscription_id": "00000000-0000-0000-0000-00000000dead"},
            )
        assert response.status_code == 200
        assert response.json() == {
            "status": "ignored",
            "kind": "cancelled",
            "reason": "No matching subscription",
        }


class TestPayPalWebhook:
    def test_verification_disabled(self, client, db_session):
        subscription = _pending(db_session, provider="paypal")
        payload = {
            "id": "WH-1",
            "event_type": "BILLING.SUBSCRIPTION.ACTIVATED",
            "resource": {"id": "I-SUB1", "status": "ACTIVE", "custom_id": str(subscription.id)},
        }
        with patch.object(settings, "paypal_verify_webhooks", False):
            response = client.post("/v1/webhooks/paypal", json=payload)

        assert response.status_code == 200
        assert response.json()["status"] == "processed"
        db_session.refresh(subscription)
        assert subscription.provider_subscription_id == "I-SUB1"

    def test_missing_webhook_id_rejects(self, client):
        with patch.object(settings, "paypal_verify_webhooks", True), patch.object(
            settings, "paypal_webhook_id", ""
        ):
            response = client.post("/v1/webhooks/paypal", json={"event_type": "X"})
        assert response.status_code == 401


class TestLemonSqueezyWebhook:
    def test_signed_webhook(self, client, db_session):
        subscription = _pending(db_session, provider="lemonsqueezy")
        body = json.dumps(
            {
                "meta": {
                    "event_name": "subscription_created",
                    "custom_data": {"subscription_id": str(subscription.id)},
                },
                "data": {"id": 321, "attributes": {"status": "active"}},
            }
        ).encode()
        signature = hmac.new(b"whsec", body, hashlib.sha256).hexdigest()

        with patch.object(settings, "lemonsqueezy_webhook_secret", "whsec"):
            response = client.post(
                "/v1/webhooks/lemonsqueezy",
                content=body,
                headers={"X-Signature": signature, "Content-Type": "application/json"},
            )

        assert response.status_code == 200
        db_session.refresh(subscription)
        assert subscription.status == SubscriptionStatus.ACTIVE.value
        assert subscription.provider_subscription_id == "321"

    def test_bad_signature(self, client):
        with patch.object(settings, "lemonsqueezy_webhook_secret", "whsec"):
            response = client.post(
                "/v1/webhooks/lemonsqueezy", content=b"{}", headers={"X-Signature": "nope"}
            )
        assert response.status_code == 401


class TestKeepzWebhook:
    def test_empty_callback_is_acknowledged(self, client):
        response = client.post("/v1/webhooks/keepz", content=b"")
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Callback acknowledged"}

    def test_plain_callback_is_processed(self, client, db_session):
        subscription = _pending(db_session, provider="keepz", keepz_order_id="order-1")
        response = client.post(
            "/v1/webhooks/keepz",
            json={"integratorOrderId": "order-1", "status": "SUCCESS", "orderId": "kz-1"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "processed"
        db_session.refresh(subscription)
        assert subscription.status == SubscriptionStatus.ACTIVE.value

    def test_envelope_without_private_key(self, client):
        with patch.object(settings, "keepz_private_key", ""):
            response = client.post(
                "/v1/webhooks/keepz", json={"encryptedData": "AAAA", "encryptedKeys": "AAAA"}
            )
        assert response.status_code == 500
        assert response.json() == {"error": "Keepz private key is not configured"}
