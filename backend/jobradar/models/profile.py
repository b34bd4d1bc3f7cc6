"""User profile models (user_profiles table)."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AccountType(str, Enum):
    """Account types. Privileged and admin accounts bypass billing."""

    STANDARD = "standard"
    PRIVILEGED = "privileged"
    ADMIN = "admin"

    @classmethod
    def _missing_(cls, value):
        # Rows created before the rename still carry "user".
        if value == "user":
            return cls.STANDARD
        return None

    @property
    def is_privileged(self) -> bool:
        return self in {AccountType.PRIVILEGED, AccountType.ADMIN}


class SubscriptionTier(str, Enum):
    """Denormalized tier written by the billing webhook."""

    FREE = "free"
    PRO = "pro"


class Profile(BaseModel):
    """A user_profiles row."""

    model_config = ConfigDict(extra="ignore")

    id: str
    account_type: AccountType = AccountType.STANDARD
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    full_name: str | None = None
    company: str | None = None
    max_active_queries: int = 0
    is_suspended: bool = False

    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    stripe_price_id: str | None = None
    status: str | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at: datetime | None = None
    canceled_at: datetime | None = None

    last_login_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("account_type", mode="before")
    @classmethod
    def _default_account_type(cls, value):
        return value or AccountType.STANDARD

    @field_validator("subscription_tier", mode="before")
    @classmethod
    def _legacy_tier(cls, value):
        # Legacy tiers ("basic", "premium") predate Stripe billing and grant nothing.
        if isinstance(value, SubscriptionTier):
            return value
        if value not in {tier.value for tier in SubscriptionTier}:
            return SubscriptionTier.FREE
        return value


class ProfileUpdate(BaseModel):
    """Fields a user may edit on their own profile."""

    model_config = ConfigDict(extra="forbid")

    full_name: str | None = Field(default=None, max_length=200)
    company: str | None = Field(default=None, max_length=200)


class AdminUserUpdate(BaseModel):
    """PATCH body for admin user edits.

    subscription_tier and max_active_queries are accepted by the schema only
    so the endpoint can reject them explicitly: the tier is owned by Stripe
    and the query limit is derived from the account type.
    """

    account_type: str | None = None
    full_name: str | None = None
    subscription_tier: str | None = None
    max_active_queries: int | None = None


class AdminStats(BaseModel):
    total_users: int
    free_users: int
    pro_users: int
    privileged_users: int


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class AdminUsersResponse(BaseModel):
    users: list[Profile]
    stats: AdminStats
    pagination: Pagination
