"""Stripe API wrapper."""

import asyncio
from typing import Any, Callable

import stripe
import structlog

from jobradar.config import StripeConfig
from jobradar.models.stripe_events import USER_ID_METADATA_KEY

logger = structlog.get_logger(__name__)


class StripeServiceError(Exception):
    """A Stripe API call failed; the message carries Stripe's explanation."""


class WebhookSignatureError(ValueError):
    """The Stripe-Signature header is missing or does not match the body."""


def _as_dict(obj: Any) -> dict:
    # StripeObject.to_dict() converts nested objects too.
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


class StripeService:
    """Encapsulates Stripe SDK calls used by billing routes and webhooks.

    The API key is passed on every call rather than set on the global
    ``stripe.api_key`` so several services (or tests) can coexist.
    """

    def __init__(self, config: StripeConfig) -> None:
        if not config.secret_key:
            raise ValueError("Stripe secret key is required")
        self.config = config

    @property
    def webhooks_configured(self) -> bool:
        return bool(self.config.webhook_secret)

    async def _call(self, operation: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            return await asyncio.to_thread(func, *args, api_key=self.config.secret_key, **kwargs)
        except stripe.StripeError as e:
            message = getattr(e, "user_message", None) or str(e)
            logger.warning("stripe_call_failed", operation=operation, error=message)
            raise StripeServiceError(f"Stripe {operation} failed: {message}") from e

    async def ensure_customer(
        self, *, user_id: str, email: str | None, customer_id: str | None = None
    ) -> tuple[str, bool]:
        """Return (customer_id, created). Reuses customer_id when given."""
        if customer_id:
            return customer_id, False

        params: dict[str, Any] = {"metadata": {"supabase_user_id": user_id}}
        if email:
            params["email"] = email
        customer = await self._call("customer creation", stripe.Customer.create, **params)
        return str(customer.id), True

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        user_id: str,
        trial_days: int | None = None,
    ) -> dict[str, str]:
        metadata = {USER_ID_METADATA_KEY: user_id, "priceId": price_id}
        subscription_data: dict[str, Any] = {"metadata": dict(metadata)}
        if trial_days:
            subscription_data["trial_period_days"] = trial_days

        session = await self._call(
            "checkout session creation",
            stripe.checkout.Session.create,
            customer=customer_id,
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=self.config.checkout_success_url,
            cancel_url=self.config.checkout_cancel_url,
            client_reference_id=user_id,
            metadata=metadata,
            subscription_data=subscription_data,
            payment_method_collection="if_required",
            allow_promotion_codes=True,
        )
        return {"id": session.id, "url": session.url}

    async def create_portal_session(self, *, customer_id: str) -> dict[str, str]:
        session = await self._call(
            "portal session creation",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=self.config.portal_return_url,
        )
        return {"id": session.id, "url": session.url}

    def verify_webhook_event(self, payload: bytes, signature: str | None) -> dict:
        """
        Verify the Stripe-Signature header against the raw body.

        Raises:
            ValueError: webhook secret not configured, or the payload is not JSON.
            WebhookSignatureError: header missing or signature mismatch.
        """
        if not self.config.webhook_secret:
            raise ValueError("Stripe webhook secret is not configured")
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")

        try:
            event = stripe.Webhook.construct_event(
                payload=payload,
                sig_header=signature,
                secret=self.config.webhook_secret,
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError("Invalid Stripe signature") from e
        return _as_dict(event)

    async def retrieve_subscription(self, subscription_id: str) -> dict:
        subscription = await self._call(
            "subscription retrieval", stripe.Subscription.retrieve, subscription_id
        )
        return _as_dict(subscription)

    async def set_subscription_user_id(self, subscription_id: str, user_id: str) -> None:
        """Attach userId metadata so later events resolve the user directly."""
        await self._call(
            "subscription metadata update",
            stripe.Subscription.modify,
            subscription_id,
            metadata={USER_ID_METADATA_KEY: user_id},
        )
        logger.info("stripe_subscription_metadata_backfilled", subscription_id=subscription_id)

    async def find_customer_ids_by_email(self, email: str) -> list[str]:
        customers = await self._call(
            "customer lookup", stripe.Customer.list, email=email, limit=10
        )
        return [str(customer.id) for customer in customers.data]

    async def list_subscriptions(self, customer_id: str) -> list[dict]:
        subscriptions = await self._call(
            "subscription listing",
            stripe.Subscription.list,
            customer=customer_id,
            status="all",
            limit=10,
        )
        return [_as_dict(subscription) for subscription in subscriptions.data]
