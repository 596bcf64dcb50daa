from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.models.subscription import Subscription, SubscriptionStatus


class SubscriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, subscription_id: UUID) -> Subscription | None:
        return self.db.query(Subscription).filter(Subscription.id == subscription_id).first()

    def get_for_user(self, subscription_id: UUID, user_id: UUID) -> Subscription | None:
        return (
            self.db.query(Subscription)
            .filter(Subscription.id == subscription_id, Subscription.user_id == user_id)
            .first()
        )

    def get_by_user_id(self, user_id: UUID) -> list[Subscription]:
        return (
            self.db.query(Subscription)
            .filter(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc())
            .all()
        )

    def get_by_provider_subscription_id(
        self, provider: str, provider_subscription_id: str
    ) -> Subscription | None:
        return (
            self.db.query(Subscription)
            .filter(
                Subscription.provider == provider,
                Subscription.provider_subscription_id == provider_subscription_id,
            )
            .first()
        )

    def get_by_keepz_order_id(self, keepz_order_id: str) -> Subscription | None:
        return (
            self.db.query(Subscription)
            .filter(Subscription.keepz_order_id == keepz_order_id)
            .first()
        )

    def get_active_for_user(self, user_id: UUID) -> list[Subscription]:
        return (
            self.db.query(Subscription)
            .filter(
                Subscription.user_id == user_id,
                Subscription.status == SubscriptionStatus.ACTIVE.value,
            )
            .all()
        )

    def has_other_active(self, user_id: UUID, exclude_id: UUID) -> bool:
        return (
            self.db.query(Subscription.id)
            .filter(
                Subscription.user_id == user_id,
                Subscription.status == SubscriptionStatus.ACTIVE.value,
                Subscription.id != exclude_id,
            )
            .first()
            is not None
        )

    def get_lapsing_active(self, now: datetime) -> list[Subscription]:
        """Active subscriptions past their period end that will not renew."""
        return (
            self.db.query(Subscription)
            .filter(
                Subscription.status == SubscriptionStatus.ACTIVE.value,
                Subscription.current_period_end.isnot(None),
                Subscription.current_period_end < now,
            )
            .all()
        )

    def get_lapsed_cancelled(self, now: datetime) -> list[Subscription]:
        return (
            self.db.query(Subscription)
            .filter(
                Subscription.status == SubscriptionStatus.CANCELLED.value,
                Subscription.current_period_end.isnot(None),
                Subscription.current_period_end < now,
            )
            .all()
        )

    def get_stale_pending(self, created_before: datetime) -> list[Subscription]:
        return (
            self.db.query(Subscription)
            .filter(
                Subscription.status == SubscriptionStatus.PENDING.value,
                Subscription.created_at < created_before,
            )
            .all()
        )

    def create(self, commit: bool = True, **fields: Any) -> Subscription:
        subscription = Subscription(**fields)
        self.db.add(subscription)
        if commit:
            self.db.commit()
            self.db.refresh(subscription)
        else:
            self.db.flush()
        return subscription

    def update(self, subscription: Subscription, commit: bool = True, **fields: Any) -> Subscription:
        for key, value in fields.items():
            setattr(subscription, key, value)
        if commit:
            self.db.commit()
            self.db.refresh(subscription)
        else:
            self.db.flush()
        return subscription
