import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reviewdesk.core.config import settings
from reviewdesk.core.errors import register_exception_handlers
from reviewdesk.routers import (
    account,
    campaigns,
    google,
    invoices,
    payment_methods,
    reviews,
    subscriptions,
    webhooks,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

OPENAPI_TAGS = [
    {"name": "Subscriptions", "description": "Create, cancel, refund and sync subscriptions."},
    {"name": "Webhooks", "description": "Inbound PayPal, LemonSqueezy, Keepz and test webhooks."},
    {"name": "Payment Methods", "description": "Save and list Keepz cards."},
    {"name": "Invoices", "description": "Generate and list invoices."},
    {"name": "Campaigns", "description": "Marketing campaign visit tracking."},
    {"name": "Reviews", "description": "AI sentiment analysis and reply drafting."},
    {"name": "Google", "description": "Google Business Profile actions and OAuth."},
    {"name": "Account", "description": "Self-service account data deletion."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Backend for AI-assisted Google Business review management. "
        "Handles subscriptions across PayPal, LemonSqueezy and Keepz, invoices, "
        "campaign attribution, review analysis and Google Business Profile access."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(subscriptions.router, prefix="/v1/subscriptions", tags=["Subscriptions"])
app.include_router(webhooks.router, prefix="/v1/webhooks", tags=["Webhooks"])
app.include_router(
    payment_methods.router,
    prefix="/v1/payment_methods",
    tags=["Payment Methods"],
)
app.include_router(invoices.router, prefix="/v1/invoices", tags=["Invoices"])
app.include_router(campaigns.router, prefix="/v1/campaigns", tags=["Campaigns"])
app.include_router(reviews.router, prefix="/v1/reviews", tags=["Reviews"])
app.include_router(google.router, prefix="/v1/google", tags=["Google"])
app.include_router(account.router, prefix="/v1/account", tags=["Account"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "domain": settings.APP_DOMAIN,
        "status": "running",
    }
