"""Subscription lifecycle transitions shared by every provider adapter.

pending -> active -> {cancelled | expired}; pending may also be cancelled,
expired (abandoned checkout) or failed (provider declined). cancelled,
expired and failed are terminal.
"""

from reviewdesk.core.errors import InvalidTransitionError
from reviewdesk.models.subscription import SubscriptionStatus

TERMINAL_STATES = frozenset(
    {
        SubscriptionStatus.CANCELLED,
        SubscriptionStatus.EXPIRED,
        SubscriptionStatus.FAILED,
    }
)

_ALLOWED: dict[str, dict[SubscriptionStatus, SubscriptionStatus]] = {
    # Re-activation is accepted so replayed activation webhooks stay no-ops
    "activate": {
        SubscriptionStatus.PENDING: SubscriptionStatus.ACTIVE,
        SubscriptionStatus.ACTIVE: SubscriptionStatus.ACTIVE,
    },
    "cancel": {
        SubscriptionStatus.PENDING: SubscriptionStatus.CANCELLED,
        SubscriptionStatus.ACTIVE: SubscriptionStatus.CANCELLED,
    },
    "expire": {
        SubscriptionStatus.PENDING: SubscriptionStatus.EXPIRED,
        SubscriptionStatus.ACTIVE: SubscriptionStatus.EXPIRED,
    },
    "fail": {
        SubscriptionStatus.PENDING: SubscriptionStatus.FAILED,
    },
}


def _transition(current: str | SubscriptionStatus, action: str) -> SubscriptionStatus:
    try:
        state = SubscriptionStatus(current)
    except ValueError:
        raise InvalidTransitionError(str(current), action) from None
    target = _ALLOWED[action].get(state)
    if target is None:
        raise InvalidTransitionError(state.value, action)
    return target


def activate(current: str | SubscriptionStatus) -> SubscriptionStatus:
    return _transition(current, "activate")


def cancel(current: str | SubscriptionStatus) -> SubscriptionStatus:
    return _transition(current, "cancel")


def expire(current: str | SubscriptionStatus) -> SubscriptionStatus:
    return _transition(current, "expire")


def fail(current: str | SubscriptionStatus) -> SubscriptionStatus:
    return _transition(current, "fail")


def can(action: str, current: str | SubscriptionStatus) -> bool:
    """Return whether ``action`` is allowed from ``current`` without raising."""
    try:
        _transition(current, action)
    except InvalidTransitionError:
        return False
    return True


def is_terminal(current: str | SubscriptionStatus) -> bool:
    return SubscriptionStatus(current) in TERMINAL_STATES
