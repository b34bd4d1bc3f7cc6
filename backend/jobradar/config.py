"""
Application configuration using pydantic-settings.
Loads environment variables from .env file.

Nested config groups (StripeConfig, BillingConfig, AdminConfig) are
env-overridable via the double-underscore delimiter, e.g.:
    STRIPE__SECRET_KEY=sk_live_...
    STRIPE__PRICE_PRO_MONTHLY=price_123
    BILLING__SHORT_PERIOD_TRIAL_DAYS=7
    ADMIN__MAX_PAGE_SIZE=200
"""

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StripeConfig(BaseModel):
    """Stripe credentials and price ids."""

    secret_key: str = ""
    publishable_key: str = ""
    webhook_secret: str = ""
    price_pro_monthly: str = "price_pro_monthly"
    # Base URL of the frontend; checkout and portal redirects are built from it
    app_url: str = "http://localhost:3000"

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key and self.publishable_key)

    @property
    def checkout_success_url(self) -> str:
        return f"{self.app_url}/dashboard?success=true&session_id={{CHECKOUT_SESSION_ID}}"

    @property
    def checkout_cancel_url(self) -> str:
        return f"{self.app_url}/pricing?canceled=true"

    @property
    def portal_return_url(self) -> str:
        return f"{self.app_url}/dashboard"


class BillingConfig(BaseModel):
    """Entitlement resolution knobs."""

    # Treat an "active" subscription whose billing period is this short as a trial
    short_period_is_trial: bool = True
    short_period_trial_days: int = Field(default=7, ge=0)
    pro_trial_days: int = Field(default=3, ge=0)


class AdminConfig(BaseModel):
    """Admin user-management listing limits."""

    default_page_size: int = Field(default=20, ge=1)
    max_page_size: int = Field(default=100, ge=1)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Supabase
    supabase_url: str = ""
    supabase_publishable_key: str = ""
    supabase_secret_key: str = ""

    # App Settings
    debug: bool = False
    cors_origins: list[str] = ["http://localhost:3000"]

    # Nested config groups (env-overridable via SECTION__KEY format)
    stripe: StripeConfig = Field(default_factory=StripeConfig)
    billing: BillingConfig = Field(default_factory=BillingConfig)
    admin: AdminConfig = Field(default_factory=AdminConfig)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
