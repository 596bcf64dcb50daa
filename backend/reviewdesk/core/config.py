import json
import logging
from typing import Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PAYPAL_BASE_URLS = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}

KEEPZ_BASE_URLS = {
    "dev": "https://gateway.dev.keepz.me/ecommerce-service",
    "live": "https://gateway.keepz.me/ecommerce-service",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "ReviewDesk"
    version: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    APP_DOMAIN: str = "example.com"
    APP_PUBLIC_URL: str = "http://localhost:5173"
    API_PUBLIC_URL: str = "http://localhost:8000"
    APP_DATABASE_DSN: str = "sqlite:////tmp/reviewdesk.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Supabase auth
    SUPABASE_URL: str = ""
    SUPABASE_JWT_SECRET: str = ""
    SUPABASE_JWT_AUDIENCE: str = "authenticated"

    # Subscription policy
    REFUND_WINDOW_HOURS: int = 48
    PENDING_CARD_TTL_HOURS: int = 24
    PENDING_SUBSCRIPTION_TTL_HOURS: int = 72

    # PayPal
    paypal_client_id: str = ""
    paypal_secret: str = Field(default="", validation_alias=AliasChoices("paypal_secret", "paypal_client_secret"))
    paypal_mode: str = "sandbox"  # "sandbox" or "live"
    paypal_base_url_override: str = Field(
        default="", validation_alias=AliasChoices("paypal_base_url_override", "paypal_base_url")
    )
    paypal_webhook_id: str = ""
    paypal_verify_webhooks: bool = True
    paypal_plan_starter: str = ""
    paypal_plan_professional: str = ""
    paypal_plan_enterprise: str = ""

    # LemonSqueezy
    lemonsqueezy_api_key: str = ""
    lemonsqueezy_store_id: str = ""
    lemonsqueezy_webhook_secret: str = ""
    lemonsqueezy_product_ids: dict[str, str] = {}

    # Keepz
    keepz_integrator_id: str = ""
    keepz_receiver_id: str = ""
    keepz_public_key: str = ""  # vendor RSA public key, base64 DER or PEM
    keepz_private_key: str = ""  # integrator RSA private key, base64 DER or PEM
    keepz_environment: str = Field(  # "dev" or "live"
        default="dev", validation_alias=AliasChoices("keepz_environment", "keepz_mode")
    )
    keepz_currency: str = "GEL"

    # OpenAI
    OPENAI_API_KEY: str = ""
    OPENAI_ANALYSIS_MODEL: str = "gpt-4.1-2025-04-14"
    OPENAI_REPLY_MODEL: str = "gpt-4o-mini"

    # Google
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @field_validator("paypal_mode")
    @classmethod
    def _check_paypal_mode(cls, value: str) -> str:
        if value not in PAYPAL_BASE_URLS:
            raise ValueError(f"paypal_mode must be one of {sorted(PAYPAL_BASE_URLS)}")
        return value

    @field_validator("keepz_environment")
    @classmethod
    def _check_keepz_environment(cls, value: str) -> str:
        if value not in KEEPZ_BASE_URLS:
            raise ValueError(f"keepz_environment must be one of {sorted(KEEPZ_BASE_URLS)}")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("lemonsqueezy_product_ids", mode="before")
    @classmethod
    def _parse_product_ids(cls, value: Any) -> Any:
        # Accepts the raw JSON object from the environment as well as a dict
        if isinstance(value, str):
            if not value.strip():
                return {}
            value = json.loads(value)
        if not isinstance(value, dict):
            raise ValueError("lemonsqueezy_product_ids must be a JSON object")
        return {str(k): str(v) for k, v in value.items()}

    @property
    def paypal_base_url(self) -> str:
        return (self.paypal_base_url_override or PAYPAL_BASE_URLS[self.paypal_mode]).rstrip("/")

    @property
    def keepz_base_url(self) -> str:
        return KEEPZ_BASE_URLS[self.keepz_environment]

    @property
    def paypal_plan_ids(self) -> dict[str, str]:
        return {
            "starter": self.paypal_plan_starter,
            "professional": self.paypal_plan_professional,
            "enterprise": self.paypal_plan_enterprise,
        }

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
