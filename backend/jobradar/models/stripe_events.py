"""
Typed views of the Stripe webhook payloads the billing handler consumes.

Each handled event type gets its own model; anything else parses into
UnhandledEvent so the handler has to acknowledge it explicitly.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

USER_ID_METADATA_KEY = "userId"


def _expandable_id(value: Any) -> Any:
    """Stripe returns either an id string or the expanded object."""
    if isinstance(value, dict):
        return value.get("id")
    return value


class StripeObject(BaseModel):
    model_config = ConfigDict(extra="ignore")


class StripeSubscription(StripeObject):
    """The subset of a Stripe Subscription stored on user_profiles."""

    id: str
    customer: str
    status: str
    price_id: str | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at: datetime | None = None
    canceled_at: datetime | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _flatten_items(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        items = (data.get("items") or {}).get("data") or []
        first_item = items[0] if items else {}
        if data.get("price_id") is None:
            data["price_id"] = (first_item.get("price") or {}).get("id")
        # Newer API versions moved the billing period onto the subscription item.
        for key in ("current_period_start", "current_period_end"):
            if data.get(key) is None and first_item.get(key) is not None:
                data[key] = first_item[key]
        return data

    @field_validator("customer", mode="before")
    @classmethod
    def _customer_id(cls, value: Any) -> Any:
        return _expandable_id(value)

    @property
    def user_id(self) -> str | None:
        return self.metadata.get(USER_ID_METADATA_KEY) or None


class StripeCheckoutSession(StripeObject):
    id: str
    mode: str | None = None
    customer: str | None = None
    subscription: str | None = None
    client_reference_id: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("customer", "subscription", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> Any:
        return _expandable_id(value)

    @property
    def user_id(self) -> str | None:
        return self.metadata.get(USER_ID_METADATA_KEY) or self.client_reference_id or None


class StripeInvoice(StripeObject):
    id: str
    customer: str | None = None
    subscription: str | None = None
    subscription_metadata: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _subscription_details(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        details = data.get("subscription_details") or {}
        # 2025 API versions nest the details under invoice.parent.
        parent_details = (data.get("parent") or {}).get("subscription_details") or {}
        if data.get("subscription") is None:
            data["subscription"] = parent_details.get("subscription")
        data["subscription_metadata"] = (
            details.get("metadata") or parent_details.get("metadata") or {}
        )
        return data

    @field_validator("customer", "subscription", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> Any:
        return _expandable_id(value)

    @property
    def user_id(self) -> str | None:
        return self.subscription_metadata.get(USER_ID_METADATA_KEY) or None


class StripeEvent(StripeObject):
    id: str = ""
    type: str


class SubscriptionUpsertedEvent(StripeEvent):
    type: Literal["customer.subscription.created", "customer.subscription.updated"]
    data: StripeSubscription


class SubscriptionDeletedEvent(StripeEvent):
    type: Literal["customer.subscription.deleted"]
    data: StripeSubscription


class TrialWillEndEvent(StripeEvent):
    type: Literal["customer.subscription.trial_will_end"]
    data: StripeSubscription


class CheckoutSessionCompletedEvent(StripeEvent):
    type: Literal["checkout.session.completed"]
    data: StripeCheckoutSession


class InvoicePaymentSucceededEvent(StripeEvent):
    type: Literal["invoice.payment_succeeded"]
    data: StripeInvoice


class InvoicePaymentFailedEvent(StripeEvent):
    type: Literal["invoice.payment_failed"]
    data: StripeInvoice


class UnhandledEvent(StripeEvent):
    data: dict[str, Any] = Field(default_factory=dict)


WebhookEvent = (
    SubscriptionUpsertedEvent
    | SubscriptionDeletedEvent
    | TrialWillEndEvent
    | CheckoutSessionCompletedEvent
    | InvoicePaymentSucceededEvent
    | InvoicePaymentFailedEvent
    | UnhandledEvent
)

EVENT_MODELS: dict[str, type[StripeEvent]] = {
    "customer.subscription.created": SubscriptionUpsertedEvent,
    "customer.subscription.updated": SubscriptionUpsertedEvent,
    "customer.subscription.deleted": SubscriptionDeletedEvent,
    "customer.subscription.trial_will_end": TrialWillEndEvent,
    "checkout.session.completed": CheckoutSessionCompletedEvent,
    "invoice.payment_succeeded": InvoicePaymentSucceededEvent,
    "invoice.payment_failed": InvoicePaymentFailedEvent,
}


def parse_webhook_event(raw: dict) -> WebhookEvent:
    """
    Parse a verified Stripe event envelope ({id, type, data.object}).

    Raises:
        ValueError: a handled event type whose object is malformed
            (pydantic.ValidationError is a ValueError).
    """
    event_type = str(raw.get("type", ""))
    data_object = (raw.get("data") or {}).get("object") or {}
    model = EVENT_MODELS.get(event_type, UnhandledEvent)
    return model.model_validate(
        {"id": str(raw.get("id", "")), "type": event_type, "data": data_object}
    )
