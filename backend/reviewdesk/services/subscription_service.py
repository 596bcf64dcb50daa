"""Subscription lifecycle operations initiated by the user or the worker.

Creating a subscription is a saga: a ``pending`` intent row is written before
the provider is called, then either completed with the provider's ids or
marked ``failed`` with the error kept in the audit log. Cancel, refund and
polling go through the shared state machine and the reconciliation service.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.core.config import settings
from reviewdesk.core.errors import (
    InvalidTransitionError,
    NotFoundError,
    ProviderError,
    RefundNotAllowedError,
)
from reviewdesk.models.payment_method import PENDING_CARD_MASK, UserPaymentMethod
from reviewdesk.models.shared import as_utc
from reviewdesk.models.subscription import (
    PlanType,
    Subscription,
    SubscriptionProvider,
    SubscriptionStatus,
)
from reviewdesk.repositories.billing_plan_repository import BillingPlanRepository
from reviewdesk.repositories.payment_method_repository import PaymentMethodRepository
from reviewdesk.repositories.payment_transaction_repository import PaymentTransactionRepository
from reviewdesk.repositories.subscription_event_repository import SubscriptionEventRepository
from reviewdesk.repositories.subscription_repository import SubscriptionRepository
from reviewdesk.repositories.user_plan_repository import UserPlanRepository
from reviewdesk.repositories.user_profile_repository import UserProfileRepository
from reviewdesk.schemas.subscription import SubscriptionCreate
from reviewdesk.services import subscription_state
from reviewdesk.services.payment_provider import CheckoutRequest, get_subscription_provider
from reviewdesk.services.provider_events import ProviderEvent, ProviderEventKind
from reviewdesk.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

# Checkout statuses meaning the provider charged synchronously
SYNC_ACTIVE_STATUSES = {"ACTIVE", "COMPLETED", "SUCCESS", "PAID"}
SYNC_PERIOD_DAYS = 30

# Providers whose refunds go through a recorded provider transaction
_PROVIDER_REFUNDS = {SubscriptionProvider.PAYPAL.value, SubscriptionProvider.LEMONSQUEEZY.value}

_ATTRIBUTION_FIELDS = (
    "campaign_code",
    "referral_source",
    "referral_medium",
    "referral_campaign",
    "referral_content",
    "referral_term",
    "landing_page",
    "conversion_page",
)


@dataclass
class CreatedSubscription:
    subscription: Subscription
    approval_url: str | None


@dataclass
class RefundOutcome:
    subscription: Subscription
    refund_id: str | None
    amount_cents: int | None


class SubscriptionService:
    def __init__(self, db: Session):
        self.db = db
        self.subscription_repo = SubscriptionRepository(db)
        self.event_repo = SubscriptionEventRepository(db)
        self.user_plan_repo = UserPlanRepository(db)
        self.transaction_repo = PaymentTransactionRepository(db)
        self.payment_method_repo = PaymentMethodRepository(db)
        self.billing_plan_repo = BillingPlanRepository(db)
        self.profile_repo = UserProfileRepository(db)
        self.reconciliation = ReconciliationService(db)

    def get_owned(self, user_id: UUID, subscription_id: UUID) -> Subscription:
        subscription = self.subscription_repo.get_for_user(subscription_id, user_id)
        if subscription is None:
            raise NotFoundError("Subscription not found")
        return subscription

    def _saved_card(self, user_id: UUID, payment_method_id: UUID) -> UserPaymentMethod:
        card = self.payment_method_repo.get_for_user(payment_method_id, user_id)
        if card is None:
            raise NotFoundError("Payment method not found")
        if card.card_mask == PENDING_CARD_MASK:
            raise ValueError("Payment method is not ready yet")
        return card

    def _resolve_price(self, provider: str, plan_type: str) -> tuple[int | None, str | None]:
        """Look up the plan price; Keepz falls back to the PayPal price list."""
        candidates = [provider]
        if provider == SubscriptionProvider.KEEPZ.value:
            candidates.append(SubscriptionProvider.PAYPAL.value)
        for candidate in candidates:
            plan = self.billing_plan_repo.get_active(candidate, plan_type)
            if plan is not None:
                return int(plan.price_cents), str(plan.currency)  # type: ignore[arg-type]
        return None, None

    def create_subscription(self, user_id: UUID, data: SubscriptionCreate) -> CreatedSubscription:
        """Create a subscription intent and open it with the provider.

        Raises:
            ConfigurationError: Provider credentials, plan mapping or price missing.
            ValueError: Invalid plan type, plan id override or saved card.
            ProviderError: The provider rejected the request; the intent is marked failed.
        """
        plan_type = PlanType(data.plan_type).value
        provider_name = SubscriptionProvider(data.provider).value
        provider = get_subscription_provider(provider_name)

        card: UserPaymentMethod | None = None
        payment_method = provider_name
        if data.payment_method_id is not None:
            if provider_name != SubscriptionProvider.KEEPZ.value:
                raise ValueError("Saved cards are only supported for Keepz")
            card = self._saved_card(user_id, data.payment_method_id)
            payment_method = "keepz_saved_card"

        amount_cents, currency = self._resolve_price(provider_name, plan_type)
        if provider_name == SubscriptionProvider.KEEPZ.value:
            currency = settings.keepz_currency

        profile = self.profile_repo.get_by_id(user_id)
        subscription_id = uuid.uuid4()
        request = CheckoutRequest(
            subscription_id=subscription_id,
            user_id=user_id,
            plan_type=plan_type,
            customer_email=profile.email if profile else None,  # type: ignore[arg-type]
            customer_name=profile.full_name if profile else None,  # type: ignore[arg-type]
            return_url=data.return_url,
            cancel_url=data.cancel_url,
            plan_id=data.plan_id,
            amount_cents=amount_cents,
            currency=currency,
            order_id=str(uuid.uuid4()) if provider_name == SubscriptionProvider.KEEPZ.value else None,
            card_token=str(card.card_token) if card else None,
        )
        # Fail before writing anything when the provider cannot be used
        provider.ensure_configured(request)

        now = datetime.now(UTC)
        subscription = self.subscription_repo.create(
            id=subscription_id,
            user_id=user_id,
            plan_type=plan_type,
            provider=provider_name,
            payment_method=payment_method,
            status=SubscriptionStatus.PENDING.value,
            amount_cents=amount_cents,
            currency=currency,
            keepz_order_id=request.order_id,
            keepz_card_token=request.card_token,
            can_refund=True,
            refund_eligible_until=now + timedelta(hours=settings.REFUND_WINDOW_HOURS),
            **{name: getattr(data, name) for name in _ATTRIBUTION_FIELDS},
        )

        try:
            result = provider.create_subscription(request)
        except Exception as e:
            self._fail_intent(subscription, e)
            raise

        fields: dict[str, str] = {}
        if result.provider_reference:
            fields["provider_subscription_id"] = result.provider_reference
        if result.keepz_subscription_id:
            fields["keepz_subscription_id"] = result.keepz_subscription_id
        self.subscription_repo.update(subscription, commit=False, **fields)
        self.event_repo.create(
            subscription_id=subscription.id,  # type: ignore[arg-type]
            event_type="subscription_created",
            provider=provider_name,
            provider_event_id=result.provider_reference or request.order_id,
            event_data={
                "plan_type": plan_type,
                "provider": provider_name,
                "payment_method": payment_method,
                "keepz_order_id": request.order_id,
                "approval_url": result.approval_url,
            },
            commit=False,
        )
        self.db.commit()
        logger.info(
            "Created %s subscription %s for user %s (plan %s)",
            provider_name,
            subscription.id,
            user_id,
            plan_type,
        )

        if (result.provider_status or "").upper() in SYNC_ACTIVE_STATUSES:
            charged = provider_name == SubscriptionProvider.KEEPZ.value
            self.reconciliation.apply(
                ProviderEvent(
                    kind=ProviderEventKind.ACTIVATED,
                    provider=provider_name,
                    event_type="subscription_activated",
                    provider_event_id=result.provider_reference,
                    local_subscription_id=subscription.id,  # type: ignore[arg-type]
                    provider_status=result.provider_status,
                    period_days=SYNC_PERIOD_DAYS,
                    transaction_id=(result.provider_reference or request.order_id) if charged else None,
                    amount_cents=amount_cents,
                    currency=currency,
                    raw=result.raw,
                )
            )
            self.db.refresh(subscription)

        return CreatedSubscription(subscription=subscription, approval_url=result.approval_url)

    def _fail_intent(self, subscription: Subscription, error: Exception) -> None:
        logger.warning(
            "Provider call for subscription %s failed: %s", subscription.id, error
        )
        self.subscription_repo.update(
            subscription,
            commit=False,
            status=subscription_state.fail(subscription.status).value,
        )
        self.event_repo.create(
            subscription_id=subscription.id,  # type: ignore[arg-type]
            event_type="subscription_failed",
            provider=str(subscription.provider),
            event_data={"error": str(error), "error_type": type(error).__name__},
            commit=False,
        )
        self.db.commit()

    def cancel_subscription(
        self, user_id: UUID, subscription_id: UUID, reason: str | None = None
    ) -> Subscription:
        """Cancel with the provider and locally. The user's plan is kept until the period lapses."""
        subscription = self.get_owned(user_id, subscription_id)
        new_status = subscription_state.cancel(subscription.status)

        provider = get_subscription_provider(str(subscription.provider))
        provider.cancel_subscription(subscription, reason)

        self.subscription_repo.update(
            subscription,
            commit=False,
            status=new_status.value,
            cancelled_at=datetime.now(UTC),
            cancel_at_period_end=provider.cancels_at_period_end or bool(subscription.cancel_at_period_end),
        )
        self.event_repo.create(
            subscription_id=subscription.id,  # type: ignore[arg-type]
            event_type="subscription_cancelled",
            provider=str(subscription.provider),
            event_data={"reason": reason, "cancelled_by": "user"},
            commit=False,
        )
        self.db.commit()
        self.db.refresh(subscription)
        logger.info("User %s cancelled subscription %s", user_id, subscription.id)
        return subscription

    def check_refund_allowed(self, subscription: Subscription, now: datetime | None = None) -> None:
        """Enforce the refund policy: refundable flag, then the fixed window."""
        now = now or datetime.now(UTC)
        if not subscription.can_refund:
            raise RefundNotAllowedError("Subscription is not eligible for refund")

        window = timedelta(hours=settings.REFUND_WINDOW_HOURS)
        deadlines = [as_utc(subscription.refund_eligible_until)]  # type: ignore[arg-type]
        created_at = as_utc(subscription.created_at)  # type: ignore[arg-type]
        if created_at is not None:
            deadlines.append(created_at + window)
        deadline = min((d for d in deadlines if d is not None), default=None)
        if deadline is None or now > deadline:
            raise RefundNotAllowedError("Refund period has expired")

    def refund_subscription(
        self, user_id: UUID, subscription_id: UUID, reason: str | None = None
    ) -> RefundOutcome:
        """Refund the latest charge inside the refund window and revoke the plan.

        Raises:
            RefundNotAllowedError: Not refundable, window passed or nothing charged.
            ProviderError: The refund failed (nothing is changed), or the refund went
                through but the provider cancellation did not (the refund is kept).
        """
        subscription = self.get_owned(user_id, subscription_id)
        self.check_refund_allowed(subscription)

        status = SubscriptionStatus(subscription.status)
        if status not in (
            SubscriptionStatus.PENDING,
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.CANCELLED,
        ):
            raise InvalidTransitionError(status.value, "refund")

        provider_name = str(subscription.provider)
        provider = get_subscription_provider(provider_name)
        transaction = self.transaction_repo.get_latest_completed(subscription.id)  # type: ignore[arg-type]
        if transaction is None and provider_name in _PROVIDER_REFUNDS:
            raise RefundNotAllowedError("No completed payment found for this subscription")

        # Refund before cancelling so a failed refund leaves the provider subscription running
        now = datetime.now(UTC)
        refund_id: str | None = None
        amount_cents: int | None = None
        if transaction is not None:
            refund = provider.refund_transaction(transaction, reason)
            refund_id = refund.provider_refund_id
            amount_cents = int(transaction.amount_cents)  # type: ignore[arg-type]
            self.transaction_repo.mark_refunded(transaction, now, commit=False)

        event_data: dict[str, Any] = {"reason": reason, "refund_id": refund_id, "amount_cents": amount_cents}
        cancel_error: ProviderError | None = None
        if status != SubscriptionStatus.CANCELLED:
            try:
                provider.cancel_subscription(subscription, reason or "Refund requested")
            except ProviderError as e:
                logger.error(
                    "Refunded subscription %s but %s cancellation failed: %s", subscription.id, provider_name, e
                )
                event_data["provider_cancel_error"] = str(e)
                cancel_error = e

        fields: dict[str, Any] = {"can_refund": False, "refunded_at": now}
        if status != SubscriptionStatus.CANCELLED:
            fields["status"] = subscription_state.cancel(status).value
        if subscription.cancelled_at is None:
            fields["cancelled_at"] = now
        self.subscription_repo.update(subscription, commit=False, **fields)
        # A refund revokes entitlement immediately
        self.reconciliation.revoke_plan_if_unentitled(subscription)
        self.event_repo.create(
            subscription_id=subscription.id,  # type: ignore[arg-type]
            event_type="refund_processed",
            provider=provider_name,
            provider_event_id=refund_id,
            event_data=event_data,
            commit=False,
        )
        self.db.commit()
        self.db.refresh(subscription)
        if cancel_error is not None:
            raise cancel_error
        logger.info("Refunded subscription %s for user %s", subscription.id, user_id)
        return RefundOutcome(subscription=subscription, refund_id=refund_id, amount_cents=amount_cents)

    def check_subscription(self, user_id: UUID, subscription_id: UUID) -> Subscription:
        """Poll the provider and mirror its state into the local row."""
        subscription = self.get_owned(user_id, subscription_id)
        provider = get_subscription_provider(str(subscription.provider))
        event = provider.fetch_subscription(subscription)
        self.reconciliation.apply(event)
        self.db.refresh(subscription)
        return subscription

    def get_pollable(self, user_id: UUID, subscription_id: UUID) -> Subscription:
        """Return the caller's subscription if its provider can be polled.

        Raises:
            NotFoundError: If the subscription does not belong to the user.
            ValueError: If the provider has no polling API.
        """
        subscription = self.get_owned(user_id, subscription_id)
        provider = get_subscription_provider(str(subscription.provider))
        if not provider.supports_polling:
            raise ValueError(f"Polling is not supported for provider {subscription.provider}")
        return subscription

    def list_subscriptions(self, user_id: UUID) -> list[Subscription]:
        return self.subscription_repo.get_by_user_id(user_id)

    def expire_lapsed(self, now: datetime | None = None) -> int:
        """Expire subscriptions whose paid period ended and drop lapsed entitlements."""
        now = now or datetime.now(UTC)
        expired = 0
        for subscription in self.subscription_repo.get_lapsing_active(now):
            # Renewing subscriptions are kept alive by provider events
            if not subscription.cancel_at_period_end and subscription.provider != SubscriptionProvider.FAKE.value:
                continue
            self.reconciliation.apply(
                ProviderEvent(
                    kind=ProviderEventKind.EXPIRED,
                    provider=str(subscription.provider),
                    event_type="subscription_period_ended",
                    local_subscription_id=subscription.id,  # type: ignore[arg-type]
                    raw={"current_period_end": str(subscription.current_period_end)},
                )
            )
            expired += 1

        for subscription in self.subscription_repo.get_lapsed_cancelled(now):
            if self.user_plan_repo.get_by_user_id(subscription.user_id) is None:  # type: ignore[arg-type]
                continue
            if self.reconciliation.revoke_plan_if_unentitled(subscription):
                logger.info("Removed lapsed plan for user %s", subscription.user_id)
        self.db.commit()
        return expired

    def expire_stale_pending(self, now: datetime | None = None) -> int:
        """Expire intent rows whose checkout was abandoned."""
        now = now or datetime.now(UTC)
        cutoff = now - timedelta(hours=settings.PENDING_SUBSCRIPTION_TTL_HOURS)
        count = 0
        for subscription in self.subscription_repo.get_stale_pending(cutoff):
            self.subscription_repo.update(
                subscription,
                commit=False,
                status=subscription_state.expire(subscription.status).value,
            )
            self.event_repo.create(
                subscription_id=subscription.id,  # type: ignore[arg-type]
                event_type="subscription_abandoned",
                provider=str(subscription.provider),
                event_data={"created_at": str(subscription.created_at)},
                commit=False,
            )
            count += 1
        self.db.commit()
        if count:
            logger.info("Expired %d abandoned pending subscriptions", count)
        return count

