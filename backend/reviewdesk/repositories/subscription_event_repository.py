"""Repository for the append-only subscription event log."""

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.models.subscription_event import SubscriptionEvent


class SubscriptionEventRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        subscription_id: UUID,
        event_type: str,
        provider: str | None = None,
        provider_event_id: str | None = None,
        event_data: dict[str, Any] | None = None,
        commit: bool = True,
    ) -> SubscriptionEvent:
        event = SubscriptionEvent(
            subscription_id=subscription_id,
            event_type=event_type,
            provider=provider,
            provider_event_id=provider_event_id,
            event_data=event_data or {},
        )
        self.db.add(event)
        if commit:
            self.db.commit()
            self.db.refresh(event)
        else:
            self.db.flush()
        return event

    def get_by_subscription_id(self, subscription_id: UUID) -> list[SubscriptionEvent]:
        return (
            self.db.query(SubscriptionEvent)
            .filter(SubscriptionEvent.subscription_id == subscription_id)
            .order_by(SubscriptionEvent.created_at.asc())
            .all()
        )
