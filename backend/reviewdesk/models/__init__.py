from reviewdesk.models.billing_plan import BillingPlan
from reviewdesk.models.campaign import CampaignVisit, MarketingCampaign
from reviewdesk.models.invoice import Invoice, InvoiceStatus
from reviewdesk.models.payment_method import PENDING_CARD_MASK, UserPaymentMethod
from reviewdesk.models.payment_transaction import PaymentTransaction, TransactionStatus
from reviewdesk.models.review import SavedReview
from reviewdesk.models.subscription import (
    PLAN_NAMES,
    PlanType,
    Subscription,
    SubscriptionProvider,
    SubscriptionStatus,
)
from reviewdesk.models.subscription_event import SubscriptionEvent
from reviewdesk.models.user_plan import UserPlan
from reviewdesk.models.user_profile import UserProfile

__all__ = [
    "BillingPlan",
    "CampaignVisit",
    "Invoice",
    "InvoiceStatus",
    "MarketingCampaign",
    "PENDING_CARD_MASK",
    "PLAN_NAMES",
    "PaymentTransaction",
    "PlanType",
    "SavedReview",
    "Subscription",
    "SubscriptionEvent",
    "SubscriptionProvider",
    "SubscriptionStatus",
    "TransactionStatus",
    "UserPaymentMethod",
    "UserPlan",
    "UserProfile",
]
