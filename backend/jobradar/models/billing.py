"""Billing, plan and entitlement models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from jobradar.models.profile import SubscriptionTier


class SubscriptionStatus(str, Enum):
    """Stripe subscription statuses plus the locally written FREE."""

    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    PAUSED = "paused"
    # Written by the payment-failed downgrade; Stripe never reports it.
    FREE = "free"

    @classmethod
    def parse(cls, value: str | None) -> "SubscriptionStatus | None":
        """Return the member for value, or None when it is not recognised."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


ACTIVE_SUBSCRIPTION_STATUSES = {SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING}


class Plan(BaseModel):
    """Static plan definition (not persisted)."""

    id: str
    name: str
    description: str
    price_id: str = ""
    price: int = 0
    currency: str = "usd"
    interval: str = "month"
    trial_days: int | None = None
    features: list[str] = Field(default_factory=list)
    limitations: list[str] = Field(default_factory=list)


class EntitlementView(BaseModel):
    """What a user may do right now. Derived on every read, never stored."""

    is_active: bool
    is_trial: bool
    is_privileged: bool
    plan_id: str
    plan_name: str
    status: str
    current_period_end: datetime | None = None
    cancel_at: datetime | None = None
    trial_ends_at: datetime | None = None
    can_create_queries: bool
    can_resume_queries: bool
    can_fetch_new_jobs: bool
    max_queries: int
    max_jobs_per_month: int
    features: list[str] = Field(default_factory=list)
    limitations: list[str] = Field(default_factory=list)


class EntitlementCheck(BaseModel):
    """Outcome of a single capability check."""

    allowed: bool
    reason: str = ""
    needs_upgrade: bool = False
    remaining: int | None = None


class BillingFields(BaseModel):
    """Billing columns written to user_profiles by the webhook handler.

    Only explicitly set fields are written, so partial updates (deletion,
    payment failure) leave the other columns untouched.
    """

    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    stripe_price_id: str | None = None
    status: SubscriptionStatus | None = None
    subscription_tier: SubscriptionTier | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at: datetime | None = None
    canceled_at: datetime | None = None

    @model_validator(mode="after")
    def _subscription_requires_customer(self) -> "BillingFields":
        if self.stripe_subscription_id and not self.stripe_customer_id:
            raise ValueError("stripe_subscription_id requires stripe_customer_id")
        return self

    def to_row(self) -> dict:
        return self.model_dump(mode="json", exclude_unset=True)


class WebhookAction(str, Enum):
    """What the webhook handler did with an event."""

    UPDATED = "updated"
    CANCELED = "canceled"
    DOWNGRADED = "downgraded"
    IGNORED = "ignored"
    DROPPED = "dropped"


class WebhookOutcome(BaseModel):
    event_type: str
    action: WebhookAction
    user_id: str | None = None
