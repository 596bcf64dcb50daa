"""Tests for account data deletion."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from reviewdesk.main import app
from reviewdesk.models.invoice import Invoice
from reviewdesk.models.payment_method import UserPaymentMethod
from reviewdesk.models.payment_transaction import PaymentTransaction
from reviewdesk.models.review import SavedReview
from reviewdesk.models.subscription import Subscription
from reviewdesk.models.user_plan import UserPlan
from reviewdesk.models.user_profile import UserProfile
from reviewdesk.repositories.payment_method_repository import PaymentMethodRepository
from reviewdesk.repositories.payment_transaction_repository import PaymentTransactionRepository
from reviewdesk.repositories.review_repository import ReviewRepository
from reviewdesk.repositories.subscription_repository import SubscriptionRepository
from reviewdesk.repositories.user_plan_repository import UserPlanRepository
from reviewdesk.repositories.user_profile_repository import UserProfileRepository
from reviewdesk.services.account_service import (
    ACCOUNT_DELETED_MESSAGE,
    AUTH_DATA_NOTE,
    AccountService,
)
from reviewdesk.services.invoice_service import InvoiceService
from tests.conftest import OTHER_USER_ID, USER_ID, auth_headers


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


def _populate(db, user_id):
    UserProfileRepository(db).create(user_id, email=f"{user_id.hex[-4:]}@example.com")
    UserPlanRepository(db).upsert(user_id, "starter")
    cards = PaymentMethodRepository(db)
    cards.create_pending(user_id, f"order-{user_id.hex[-4:]}")
    saved = cards.create_pending(user_id, f"order-saved-{user_id.hex[-4:]}")
    cards.update(saved, card_token="tok", card_mask="****4242", card_brand="VISA")
    ReviewRepository(db).upsert(user_id, f"rev-{user_id.hex[-4:]}", "loc-1", text="Nice", rating=5)
    subscription = SubscriptionRepository(db).create(
        user_id=user_id, plan_type="starter", provider="fake", payment_method="fake", status="active"
    )
    PaymentTransactionRepository(db).create(
        user_id=user_id,
        subscription_id=subscription.id,
        provider="fake",
        provider_transaction_id=f"fake-{user_id.hex[-4:]}",
        amount_cents=2900,
        currency="USD",
    )
    InvoiceService(db).generate_invoice(
        user_id=user_id, payment_method="fake", amount_cents=2900, plan_type="starter"
    )


class TestAccountService:
    def test_deletes_personal_data_and_keeps_billing(self, db_session):
        _populate(db_session, USER_ID)
        _populate(db_session, OTHER_USER_ID)

        result = AccountService(db_session).delete_account_data(USER_ID)

        assert result.profile_deleted is True
        assert result.plan_deleted is True
        assert result.payment_methods_deleted == 2
        assert result.reviews_deleted == 1

        db_session.expire_all()
        for model in (UserProfile, UserPlan, UserPaymentMethod, SavedReview):
            owner = UserProfile.id if model is UserProfile else model.user_id
            assert db_session.query(model).filter(owner == USER_ID).count() == 0
            assert db_session.query(model).filter(owner == OTHER_USER_ID).count() > 0
        for model in (Subscription, PaymentTransaction, Invoice):
            assert db_session.query(model).filter(model.user_id == USER_ID).count() == 1

    def test_nothing_to_delete(self, db_session):
        result = AccountService(db_session).delete_account_data(USER_ID)
        assert result.profile_deleted is False
        assert result.plan_deleted is False
        assert result.payment_methods_deleted == 0
        assert result.reviews_deleted == 0

    def test_failure_rolls_back(self, db_session):
        _populate(db_session, USER_ID)
        with patch(
            "reviewdesk.services.account_service.ReviewRepository.delete_for_user",
            side_effect=RuntimeError("boom"),
        ):
            with pytest.raises(RuntimeError):
                AccountService(db_session).delete_account_data(USER_ID)

        assert db_session.query(UserProfile).filter(UserProfile.id == USER_ID).count() == 1
        assert db_session.query(UserPlan).filter(UserPlan.user_id == USER_ID).count() == 1


class TestAccountAPI:
    def test_delete_account(self, client, db_session):
        _populate(db_session, USER_ID)

        response = client.delete("/v1/account", headers=auth_headers())

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": ACCOUNT_DELETED_MESSAGE,
            "note": AUTH_DATA_NOTE,
        }
        db_session.expire_all()
        assert db_session.query(UserProfile).count() == 0
        assert db_session.query(Invoice).count() == 1

    def test_requires_auth(self, client):
        response = client.delete("/v1/account")
        assert response.status_code == 401
        assert response.json() == {"error": "No authorization header"}
