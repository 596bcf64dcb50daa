"""Apply normalized provider events to local billing state.

Webhooks, polling and synchronous checkouts all end here. The service finds
the local subscription an event refers to, moves it through the shared state
machine and keeps ``UserPlan``, transactions, invoices and the audit log in
step, committing once per event.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.models.payment_transaction import PaymentTransaction
from reviewdesk.models.subscription import Subscription, SubscriptionProvider, SubscriptionStatus
from reviewdesk.repositories.payment_method_repository import PaymentMethodRepository
from reviewdesk.repositories.payment_transaction_repository import PaymentTransactionRepository
from reviewdesk.repositories.subscription_event_repository import SubscriptionEventRepository
from reviewdesk.repositories.subscription_repository import SubscriptionRepository
from reviewdesk.repositories.user_plan_repository import UserPlanRepository
from reviewdesk.services import subscription_state
from reviewdesk.services.card_vault_service import CardVaultService
from reviewdesk.services.invoice_service import InvoiceService, ProfileNotFoundError
from reviewdesk.services.payment_providers.keepz import card_save_event
from reviewdesk.services.provider_events import ProviderEvent, ProviderEventKind

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"
# A payment that activates a pending row without a provider period gets a month
DEFAULT_PERIOD_DAYS = 30

# Provider-reported statuses (lowercased) that map onto a local transition
_STATUS_ACTIONS = {
    "active": "activate",
    "cancelled": "cancel",
    "canceled": "cancel",
    "expired": "expire",
}


@dataclass
class ReconciliationResult:
    status: str
    kind: str
    subscription_id: UUID | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, str]:
        result = {"status": self.status, "kind": self.kind}
        if self.subscription_id is not None:
            result["subscription_id"] = str(self.subscription_id)
        if self.reason:
            result["reason"] = self.reason
        return result


class ReconciliationService:
    """Dispatch provider events to one handler per event kind."""

    def __init__(self, db: Session):
        self.db = db
        self.subscription_repo = SubscriptionRepository(db)
        self.event_repo = SubscriptionEventRepository(db)
        self.user_plan_repo = UserPlanRepository(db)
        self.transaction_repo = PaymentTransactionRepository(db)
        self.payment_method_repo = PaymentMethodRepository(db)
        self.invoice_service = InvoiceService(db)
        self.card_vault = CardVaultService(db)

    def apply(self, event: ProviderEvent) -> ReconciliationResult:
        """Apply one event and commit, or roll back everything it touched."""
        event = self._resolve_card_save(event)
        handler = EVENT_HANDLERS[event.kind]
        try:
            result = handler(self, event)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(
            "Applied %s event %s (%s): %s",
            event.provider,
            event.event_type,
            event.kind.value,
            result.status,
        )
        return result

    def _resolve_card_save(self, event: ProviderEvent) -> ProviderEvent:
        # A pending card placeholder for the order takes precedence over subscriptions
        if event.provider != SubscriptionProvider.KEEPZ.value or not event.keepz_order_id:
            return event
        if event.kind in (ProviderEventKind.CARD_SAVED, ProviderEventKind.CARD_FAILED):
            return event
        if self.payment_method_repo.get_pending_by_token(event.keepz_order_id) is None:
            return event
        return card_save_event(event)

    def _match(self, event: ProviderEvent) -> Subscription | None:
        """Find the local subscription: custom id, then provider id, then Keepz order id."""
        if event.local_subscription_id is not None:
            subscription = self.subscription_repo.get_by_id(event.local_subscription_id)
            if subscription is not None and subscription.provider == event.provider:
                return subscription
        if event.provider_subscription_id:
            subscription = self.subscription_repo.get_by_provider_subscription_id(
                event.provider, event.provider_subscription_id
            )
            if subscription is not None:
                return subscription
        if event.keepz_order_id:
            return self.subscription_repo.get_by_keepz_order_id(event.keepz_order_id)
        return None

    def _unmatched(self, event: ProviderEvent) -> ReconciliationResult:
        logger.warning(
            "No local subscription for %s event %s (custom=%s, provider_id=%s, order=%s)",
            event.provider,
            event.event_type,
            event.local_subscription_id,
            event.provider_subscription_id,
            event.keepz_order_id,
        )
        return ReconciliationResult(
            status="ignored", kind=event.kind.value, reason="No matching subscription"
        )

    def _record(self, subscription: Subscription, event: ProviderEvent, event_type: str | None = None) -> None:
        self.event_repo.create(
            subscription_id=subscription.id,  # type: ignore[arg-type]
            event_type=event_type or event.event_type,
            provider=event.provider,
            provider_event_id=event.provider_event_id,
            event_data=event.raw,
            commit=False,
        )

    def _processed(self, subscription: Subscription, event: ProviderEvent) -> ReconciliationResult:
        return ReconciliationResult(
            status="processed",
            kind=event.kind.value,
            subscription_id=subscription.id,  # type: ignore[arg-type]
        )

    def _skipped(self, subscription: Subscription, event: ProviderEvent, action: str) -> ReconciliationResult:
        logger.warning(
            "Not applying %s to subscription %s in status %s",
            action,
            subscription.id,
            subscription.status,
        )
        self._record(subscription, event)
        return ReconciliationResult(
            status="ignored",
            kind=event.kind.value,
            subscription_id=subscription.id,  # type: ignore[arg-type]
            reason=f"Cannot {action} a subscription in status '{subscription.status}'",
        )

    def _period_end(
        self,
        subscription: Subscription,
        event: ProviderEvent,
        now: datetime,
        default_days: int | None = None,
    ) -> datetime | None:
        if event.period_end is not None:
            return event.period_end
        if event.period_days:
            return now + timedelta(days=event.period_days)
        if subscription.current_period_end is None and default_days:
            return now + timedelta(days=default_days)
        return subscription.current_period_end  # type: ignore[return-value]

    def _apply_identifiers(self, subscription: Subscription, event: ProviderEvent) -> None:
        if event.provider_subscription_id and not subscription.provider_subscription_id:
            subscription.provider_subscription_id = event.provider_subscription_id  # type: ignore[assignment]
        if event.keepz_subscription_id:
            subscription.keepz_subscription_id = event.keepz_subscription_id  # type: ignore[assignment]
        if event.card_token:
            subscription.keepz_card_token = event.card_token  # type: ignore[assignment]

    def _record_transaction(self, subscription: Subscription, event: ProviderEvent) -> PaymentTransaction | None:
        if not event.transaction_id:
            return None
        existing = self.transaction_repo.get_by_provider_transaction_id(event.provider, event.transaction_id)
        if existing is not None:
            return None
        return self.transaction_repo.create(
            user_id=subscription.user_id,  # type: ignore[arg-type]
            subscription_id=subscription.id,  # type: ignore[arg-type]
            provider=event.provider,
            provider_transaction_id=event.transaction_id,
            amount_cents=int(event.amount_cents or subscription.amount_cents or 0),
            currency=event.currency or subscription.currency or DEFAULT_CURRENCY,
            metadata={"event_type": event.event_type},
            commit=False,
        )

    def _cancel_siblings(self, subscription: Subscription, now: datetime) -> None:
        """Cancel the user's other active subscriptions before this one activates."""
        for other in self.subscription_repo.get_active_for_user(subscription.user_id):  # type: ignore[arg-type]
            if other.id == subscription.id:
                continue
            logger.info("Cancelling subscription %s superseded by %s", other.id, subscription.id)
            self.subscription_repo.update(
                other,
                commit=False,
                status=subscription_state.cancel(other.status).value,
                cancelled_at=now,
            )
            self.event_repo.create(
                subscription_id=other.id,  # type: ignore[arg-type]
                event_type="subscription_superseded",
                provider=other.provider,  # type: ignore[arg-type]
                event_data={"superseded_by": str(subscription.id)},
                commit=False,
            )
        # Siblings must leave 'active' before the partial unique index sees the new row
        self.db.flush()

    def _activate(
        self, subscription: Subscription, event: ProviderEvent, default_days: int | None = None
    ) -> None:
        now = datetime.now(UTC)
        was_active = subscription.status == SubscriptionStatus.ACTIVE.value
        new_status = subscription_state.activate(subscription.status)
        self._cancel_siblings(subscription, now)
        self._apply_identifiers(subscription, event)
        fields = {
            "status": new_status.value,
            "current_period_end": self._period_end(subscription, event, now, default_days),
        }
        if not was_active:
            fields["current_period_start"] = now
        self.subscription_repo.update(subscription, commit=False, **fields)
        self.user_plan_repo.upsert(subscription.user_id, subscription.plan_type, commit=False)  # type: ignore[arg-type]

    def _on_ignored(self, event: ProviderEvent) -> ReconciliationResult:
        logger.info("Ignoring %s event %s: %s", event.provider, event.event_type, event.reason)
        return ReconciliationResult(status="ignored", kind=event.kind.value, reason=event.reason)

    def _on_created(self, event: ProviderEvent) -> ReconciliationResult:
        subscription = self._match(event)
        if subscription is None:
            return self._unmatched(event)
        self._apply_identifiers(subscription, event)
        self.db.flush()
        self._record(subscription, event)
        return self._processed(subscription, event)

    def _on_activated(self, event: ProviderEvent) -> ReconciliationResult:
        subscription = self._match(event)
        if subscription is None:
            return self._unmatched(event)
        if not subscription_state.can("activate", subscription.status):
            return self._skipped(subscription, event, "activate")
        self._activate(subscription, event)
        self._record_transaction(subscription, event)
        self._record(subscription, event)
        return self._processed(subscription, event)

    def _on_updated(self, event: ProviderEvent) -> ReconciliationResult:
        subscription = self._match(event)
        if subscription is None:
            return self._unmatched(event)
        action = _STATUS_ACTIONS.get((event.provider_status or "").lower())
        if action == "activate":
            return self._on_activated(event)
        if action == "cancel":
            return self._on_cancelled(event)
        if action == "expire":
            return self._on_expired(event)

        # Status kept (suspended, past due, paused); only ids and period move
        self._apply_identifiers(subscription, event)
        if event.period_end is not None:
            subscription.current_period_end = event.period_end  # type: ignore[assignment]
        self.db.flush()
        self._record(subscription, event)
        return self._processed(subscription, event)

    def _on_cancelled(self, event: ProviderEvent) -> ReconciliationResult:
        subscription = self._match(event)
        if subscription is None:
            return self._unmatched(event)
        if subscription.status == SubscriptionStatus.CANCELLED.value:
            self._record(subscription, event)
            return self._processed(subscription, event)
        if not subscription_state.can("cancel", subscription.status):
            return self._skipped(subscription, event, "cancel")

        fields = {
            "status": subscription_state.cancel(subscription.status).value,
            "cancelled_at": datetime.now(UTC),
        }
        if event.period_end is not None:
            fields["current_period_end"] = event.period_end
        self.subscription_repo.update(subscription, commit=False, **fields)
        # Entitlement stays until the period lapses
        self._record(subscription, event)
        return self._processed(subscription, event)

    def _on_expired(self, event: ProviderEvent) -> ReconciliationResult:
        subscription = self._match(event)
        if subscription is None:
            return self._unmatched(event)
        if subscription.status != SubscriptionStatus.EXPIRED.value:
            if not subscription_state.can("expire", subscription.status):
                # A cancelled subscription reaching its end only loses entitlement
                if subscription.status != SubscriptionStatus.CANCELLED.value:
                    return self._skipped(subscription, event, "expire")
            else:
                self.subscription_repo.update(
                    subscription,
                    commit=False,
                    status=subscription_state.expire(subscription.status).value,
                )
        self.revoke_plan_if_unentitled(subscription)
        self._record(subscription, event)
        return self._processed(subscription, event)

    def _on_failed(self, event: ProviderEvent) -> ReconciliationResult:
        subscription = self._match(event)
        if subscription is None:
            return self._unmatched(event)
        if not subscription_state.can("fail", subscription.status):
            return self._skipped(subscription, event, "fail")
        self._apply_identifiers(subscription, event)
        self.subscription_repo.update(
            subscription,
            commit=False,
            status=subscription_state.fail(subscription.status).value,
        )
        self._record(subscription, event)
        return self._processed(subscription, event)

    def _on_payment_completed(self, event: ProviderEvent) -> ReconciliationResult:
        subscription = self._match(event)
        if subscription is None:
            return self._unmatched(event)

        if subscription.status == SubscriptionStatus.PENDING.value:
            self._activate(subscription, event, default_days=DEFAULT_PERIOD_DAYS)
        transaction = self._record_transaction(subscription, event)
        if transaction is not None:
            self._generate_invoice(subscription, transaction)
        self._record(subscription, event)
        return self._processed(subscription, event)

    def _generate_invoice(self, subscription: Subscription, transaction: PaymentTransaction) -> None:
        try:
            self.invoice_service.generate_invoice(
                user_id=subscription.user_id,  # type: ignore[arg-type]
                subscription_id=subscription.id,  # type: ignore[arg-type]
                payment_method=str(subscription.payment_method),
                transaction_id=str(transaction.provider_transaction_id),
                amount_cents=int(transaction.amount_cents),
                plan_type=str(subscription.plan_type),
                billing_period_start=subscription.current_period_start,  # type: ignore[arg-type]
                billing_period_end=subscription.current_period_end,  # type: ignore[arg-type]
                commit=False,
            )
        except ProfileNotFoundError:
            logger.info("Skipping invoice for user %s without a profile", subscription.user_id)

    def _on_card_saved(self, event: ProviderEvent) -> ReconciliationResult:
        pending = self.payment_method_repo.get_pending_by_token(event.keepz_order_id or "")
        if pending is None or event.card is None:
            logger.warning("No pending card for Keepz order %s", event.keepz_order_id)
            return ReconciliationResult(
                status="ignored", kind=event.kind.value, reason="No pending card"
            )
        self.card_vault.apply_card_saved(pending, event.card)
        return ReconciliationResult(status="processed", kind=event.kind.value)

    def _on_card_failed(self, event: ProviderEvent) -> ReconciliationResult:
        pending = self.payment_method_repo.get_pending_by_token(event.keepz_order_id or "")
        if pending is None:
            logger.warning("No pending card for Keepz order %s", event.keepz_order_id)
            return ReconciliationResult(
                status="ignored", kind=event.kind.value, reason="No pending card"
            )
        self.card_vault.apply_card_failed(pending)
        return ReconciliationResult(status="processed", kind=event.kind.value)

    def revoke_plan_if_unentitled(self, subscription: Subscription) -> bool:
        """Remove the user's plan unless another subscription is still active."""
        if self.subscription_repo.has_other_active(subscription.user_id, subscription.id):  # type: ignore[arg-type]
            return False
        return self.user_plan_repo.delete_for_user(subscription.user_id, commit=False)  # type: ignore[arg-type]


EVENT_HANDLERS: dict[ProviderEventKind, Callable[[ReconciliationService, ProviderEvent], ReconciliationResult]] = {
    ProviderEventKind.CREATED: ReconciliationService._on_created,
    ProviderEventKind.ACTIVATED: ReconciliationService._on_activated,
    ProviderEventKind.UPDATED: ReconciliationService._on_updated,
    ProviderEventKind.CANCELLED: ReconciliationService._on_cancelled,
    ProviderEventKind.EXPIRED: ReconciliationService._on_expired,
    ProviderEventKind.FAILED: ReconciliationService._on_failed,
    ProviderEventKind.PAYMENT_COMPLETED: ReconciliationService._on_payment_completed,
    ProviderEventKind.CARD_SAVED: ReconciliationService._on_card_saved,
    ProviderEventKind.CARD_FAILED: ReconciliationService._on_card_failed,
    ProviderEventKind.IGNORED: ReconciliationService._on_ignored,
}


def check_handlers_exhaustive(handlers: dict[ProviderEventKind, object]) -> None:
    missing = sorted(kind.value for kind in ProviderEventKind if kind not in handlers)
    if missing:
        raise RuntimeError(f"No reconciliation handler for event kinds: {', '.join(missing)}")


check_handlers_exhaustive(EVENT_HANDLERS)
