"""Normalized provider notifications.

Every adapter turns its webhook or polling payload into a ``ProviderEvent``
tagged with a ``ProviderEventKind``. The reconciliation service dispatches on
the kind, so the raw provider event strings never leave the adapters.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class ProviderEventKind(str, Enum):
    CREATED = "created"
    ACTIVATED = "activated"
    UPDATED = "updated"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    FAILED = "failed"
    PAYMENT_COMPLETED = "payment_completed"
    CARD_SAVED = "card_saved"
    CARD_FAILED = "card_failed"
    IGNORED = "ignored"


@dataclass
class CardDetails:
    """Card data returned by Keepz after a successful save."""

    token: str
    mask: str | None = None
    brand: str | None = None
    expiration_date: str | None = None

    @property
    def last_4(self) -> str | None:
        if not self.mask:
            return None
        digits = "".join(ch for ch in self.mask if ch.isdigit())
        return digits[-4:] if len(digits) >= 4 else None


@dataclass
class ProviderEvent:
    kind: ProviderEventKind
    provider: str
    # Raw provider event name, stored as the audit event_type
    event_type: str
    provider_event_id: str | None = None

    # Keys used to find the local subscription, tried in this order
    local_subscription_id: UUID | None = None
    provider_subscription_id: str | None = None
    keepz_order_id: str | None = None

    # Provider-reported status (used by UPDATED events)
    provider_status: str | None = None
    period_end: datetime | None = None
    period_days: int | None = None
    keepz_subscription_id: str | None = None
    card_token: str | None = None

    # Charge details (PAYMENT_COMPLETED, or ACTIVATED events carrying a charge)
    transaction_id: str | None = None
    amount_cents: int | None = None
    currency: str | None = None

    card: CardDetails | None = None
    reason: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ignored(cls, provider: str, event_type: str, reason: str, raw: dict[str, Any] | None = None) -> "ProviderEvent":
        return cls(
            kind=ProviderEventKind.IGNORED,
            provider=provider,
            event_type=event_type,
            reason=reason,
            raw=raw or {},
        )
