import logging
from typing import Any
from uuid import UUID

from arq import cron

from reviewdesk.core.database import SessionLocal
from reviewdesk.repositories.subscription_repository import SubscriptionRepository
from reviewdesk.services.card_vault_service import CardVaultService
from reviewdesk.services.payment_provider import get_subscription_provider
from reviewdesk.services.reconciliation_service import ReconciliationService
from reviewdesk.services.subscription_service import SubscriptionService
from reviewdesk.tasks import redis_settings

logger = logging.getLogger(__name__)


async def expire_lapsed_subscriptions_task(ctx: dict[str, Any]) -> int:
    """Background task: expire subscriptions whose paid period has ended.

    Also drops the plan of cancelled subscriptions past their period end.
    Runs hourly.
    """
    db = SessionLocal()
    try:
        count = SubscriptionService(db).expire_lapsed()
        if count > 0:
            logger.info("Expired %d lapsed subscriptions", count)
        return count
    finally:
        db.close()


async def expire_stale_pending_subscriptions_task(ctx: dict[str, Any]) -> int:
    """Background task: expire checkout intents that never completed.

    Runs hourly.
    """
    db = SessionLocal()
    try:
        count = SubscriptionService(db).expire_stale_pending()
        if count > 0:
            logger.info("Expired %d abandoned subscription intents", count)
        return count
    finally:
        db.close()


async def cleanup_pending_cards_task(ctx: dict[str, Any]) -> int:
    """Background task: delete card placeholders whose Keepz callback never came.

    Runs hourly.
    """
    db = SessionLocal()
    try:
        return CardVaultService(db).cleanup_stale_pending()
    finally:
        db.close()


async def sync_subscription_task(ctx: dict[str, Any], subscription_id: str) -> str:
    """Background task: poll the provider for one subscription and reconcile it.

    Returns:
        The reconciliation status, or ``missing`` when the row does not exist.
    """
    db = SessionLocal()
    try:
        subscription = SubscriptionRepository(db).get_by_id(UUID(subscription_id))
        if subscription is None:
            logger.warning("Subscription %s not found for sync", subscription_id)
            return "missing"
        provider = get_subscription_provider(str(subscription.provider))
        event = provider.fetch_subscription(subscription)
        result = ReconciliationService(db).apply(event)
        return result.status
    finally:
        db.close()


class WorkerSettings:
    functions = [
        expire_lapsed_subscriptions_task,
        expire_stale_pending_subscriptions_task,
        cleanup_pending_cards_task,
        sync_subscription_task,
    ]
    cron_jobs = [
        cron(expire_lapsed_subscriptions_task, minute={0}),  # hourly
        cron(expire_stale_pending_subscriptions_task, minute={15}),  # hourly
        cron(cleanup_pending_cards_task, minute={30}),  # hourly
    ]
    redis_settings = redis_settings
