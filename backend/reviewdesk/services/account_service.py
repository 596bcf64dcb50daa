"""Self-service account data deletion."""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.repositories.payment_method_repository import PaymentMethodRepository
from reviewdesk.repositories.review_repository import ReviewRepository
from reviewdesk.repositories.user_plan_repository import UserPlanRepository
from reviewdesk.repositories.user_profile_repository import UserProfileRepository

logger = logging.getLogger(__name__)

ACCOUNT_DELETED_MESSAGE = (
    "Account data deleted successfully. Please contact support to complete account deletion."
)
AUTH_DATA_NOTE = "User authentication data will be deleted by an administrator."


@dataclass
class AccountDeletion:
    profile_deleted: bool
    plan_deleted: bool
    payment_methods_deleted: int
    reviews_deleted: int


class AccountService:
    def __init__(self, db: Session):
        self.db = db

    def delete_account_data(self, user_id: UUID) -> AccountDeletion:
        """Remove the user's personal data in one transaction.

        Subscriptions, their events, payment transactions and invoices stay
        as billing records.
        """
        try:
            result = AccountDeletion(
                profile_deleted=UserProfileRepository(self.db).delete(user_id, commit=False),
                plan_deleted=UserPlanRepository(self.db).delete_for_user(user_id, commit=False),
                payment_methods_deleted=PaymentMethodRepository(self.db).delete_for_user(
                    user_id, commit=False
                ),
                reviews_deleted=ReviewRepository(self.db).delete_for_user(user_id, commit=False),
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(
            "Deleted account data for user %s (%d cards, %d reviews)",
            user_id,
            result.payment_methods_deleted,
            result.reviews_deleted,
        )
        return result
