from reviewdesk.schemas.campaign import CampaignVisitCreate, CampaignVisitResponse
from reviewdesk.schemas.google import (
    GoogleBusinessRequest,
    OAuthCallbackRequest,
    OAuthCallbackResponse,
)
from reviewdesk.schemas.invoice import InvoiceCreate, InvoiceCreateResponse, InvoiceResponse
from reviewdesk.schemas.payment_method import (
    CardSaveCreate,
    CardSaveResponse,
    PaymentMethodResponse,
)
from reviewdesk.schemas.review import (
    ReplyRequest,
    ReplyResponse,
    ReviewAnalysisRequest,
    ReviewAnalysisResponse,
    ReviewInput,
)
from reviewdesk.schemas.subscription import (
    CampaignAttribution,
    PayPalPublicConfig,
    SubscriptionCancel,
    SubscriptionCreate,
    SubscriptionCreateResponse,
    SubscriptionRefund,
    SubscriptionRefundResponse,
    SubscriptionResponse,
    UserPlanResponse,
)

__all__ = [
    "CampaignAttribution",
    "CampaignVisitCreate",
    "CampaignVisitResponse",
    "CardSaveCreate",
    "CardSaveResponse",
    "GoogleBusinessRequest",
    "InvoiceCreate",
    "InvoiceCreateResponse",
    "InvoiceResponse",
    "OAuthCallbackRequest",
    "OAuthCallbackResponse",
    "PayPalPublicConfig",
    "PaymentMethodResponse",
    "ReplyRequest",
    "ReplyResponse",
    "ReviewAnalysisRequest",
    "ReviewAnalysisResponse",
    "ReviewInput",
    "SubscriptionCancel",
    "SubscriptionCreate",
    "SubscriptionCreateResponse",
    "SubscriptionRefund",
    "SubscriptionRefundResponse",
    "SubscriptionResponse",
    "UserPlanResponse",
]
