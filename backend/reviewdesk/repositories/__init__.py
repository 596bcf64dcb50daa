from reviewdesk.repositories.billing_plan_repository import BillingPlanRepository
from reviewdesk.repositories.campaign_repository import CampaignRepository
from reviewdesk.repositories.invoice_repository import InvoiceRepository
from reviewdesk.repositories.payment_method_repository import PaymentMethodRepository
from reviewdesk.repositories.payment_transaction_repository import PaymentTransactionRepository
from reviewdesk.repositories.review_repository import ReviewRepository
from reviewdesk.repositories.subscription_event_repository import SubscriptionEventRepository
from reviewdesk.repositories.subscription_repository import SubscriptionRepository
from reviewdesk.repositories.user_plan_repository import UserPlanRepository
from reviewdesk.repositories.user_profile_repository import UserProfileRepository

__all__ = [
    "BillingPlanRepository",
    "CampaignRepository",
    "InvoiceRepository",
    "PaymentMethodRepository",
    "PaymentTransactionRepository",
    "ReviewRepository",
    "SubscriptionEventRepository",
    "SubscriptionRepository",
    "UserPlanRepository",
    "UserProfileRepository",
]
