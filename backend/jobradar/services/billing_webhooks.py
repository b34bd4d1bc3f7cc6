"""
Stripe webhook reconciliation.

Keeps the billing columns of user_profiles in line with Stripe. Every path
overwrites fields with the values Stripe reports, so replaying an event
leaves the profile unchanged. Events whose user cannot be resolved are
logged and dropped: Stripe stays the source of truth and resends state on
the next change.
"""

import structlog

from jobradar.models.billing import (
    ACTIVE_SUBSCRIPTION_STATUSES,
    BillingFields,
    SubscriptionStatus,
    WebhookAction,
    WebhookOutcome,
)
from jobradar.models.profile import SubscriptionTier
from jobradar.models.stripe_events import (
    USER_ID_METADATA_KEY,
    CheckoutSessionCompletedEvent,
    InvoicePaymentFailedEvent,
    InvoicePaymentSucceededEvent,
    StripeSubscription,
    SubscriptionDeletedEvent,
    SubscriptionUpsertedEvent,
    TrialWillEndEvent,
    UnhandledEvent,
    WebhookEvent,
)
from jobradar.services.profile_store import ProfileRepository
from jobradar.services.stripe_service import StripeService, StripeServiceError

logger = structlog.get_logger(__name__)


def _with_user_id(subscription: StripeSubscription, user_id: str) -> StripeSubscription:
    metadata = {**subscription.metadata, USER_ID_METADATA_KEY: user_id}
    return subscription.model_copy(update={"metadata": metadata})


class BillingWebhookHandler:
    """Applies verified Stripe events to user profiles."""

    def __init__(self, repository: ProfileRepository, stripe_service: StripeService) -> None:
        self.repository = repository
        self.stripe_service = stripe_service

    async def handle(self, event: WebhookEvent) -> WebhookOutcome:
        if isinstance(event, SubscriptionUpsertedEvent):
            return await self._apply_subscription(event.type, event.data)
        if isinstance(event, SubscriptionDeletedEvent):
            return await self._cancel_subscription(event.type, event.data)
        if isinstance(event, CheckoutSessionCompletedEvent):
            return await self._complete_checkout(event)
        if isinstance(event, InvoicePaymentSucceededEvent):
            return await self._refresh_from_invoice(event)
        if isinstance(event, InvoicePaymentFailedEvent):
            return await self._downgrade_after_failed_payment(event)
        if isinstance(event, TrialWillEndEvent):
            logger.info(
                "billing_trial_will_end",
                subscription_id=event.data.id,
                user_id=event.data.user_id,
                trial_ends_at=event.data.current_period_end,
            )
            return WebhookOutcome(event_type=event.type, action=WebhookAction.IGNORED)
        if isinstance(event, UnhandledEvent):
            logger.info("billing_webhook_unhandled", event_type=event.type, event_id=event.id)
            return WebhookOutcome(event_type=event.type, action=WebhookAction.IGNORED)
        raise TypeError(f"No webhook handler for {type(event).__name__}")

    async def _resolve_user_id(
        self, subscription: StripeSubscription, *, backfill: bool = True
    ) -> str | None:
        if subscription.user_id:
            return subscription.user_id

        profile = await self.repository.get_profile_by_customer_id(subscription.customer)
        if profile is None:
            return None

        if backfill:
            try:
                await self.stripe_service.set_subscription_user_id(subscription.id, profile.id)
            except StripeServiceError as e:
                # The profile write below does not depend on the backfill.
                logger.warning(
                    "billing_metadata_backfill_failed",
                    subscription_id=subscription.id,
                    user_id=profile.id,
                    error=str(e),
                )
        return profile.id

    async def _apply_subscription(
        self,
        event_type: str,
        subscription: StripeSubscription,
        *,
        user_id: str | None = None,
    ) -> WebhookOutcome:
        status = SubscriptionStatus.parse(subscription.status)
        if status is None or status == SubscriptionStatus.FREE:
            logger.warning(
                "stripe_status_unrecognized",
                event_type=event_type,
                subscription_id=subscription.id,
                status=subscription.status,
            )
            return WebhookOutcome(event_type=event_type, action=WebhookAction.DROPPED)

        user_id = user_id or await self._resolve_user_id(subscription)
        if not user_id:
            logger.warning(
                "billing_webhook_user_unresolved",
                event_type=event_type,
                subscription_id=subscription.id,
                customer_id=subscription.customer,
            )
            return WebhookOutcome(event_type=event_type, action=WebhookAction.DROPPED)

        fields = BillingFields(
            stripe_customer_id=subscription.customer,
            stripe_subscription_id=subscription.id,
            stripe_price_id=subscription.price_id,
            status=status,
            subscription_tier=(
                SubscriptionTier.PRO
                if status in ACTIVE_SUBSCRIPTION_STATUSES
                else SubscriptionTier.FREE
            ),
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            cancel_at=subscription.cancel_at,
            canceled_at=subscription.canceled_at,
        )
        return await self._write(event_type, user_id, fields, WebhookAction.UPDATED)

    async def _cancel_subscription(
        self, event_type: str, subscription: StripeSubscription
    ) -> WebhookOutcome:
        user_id = await self._resolve_user_id(subscription, backfill=False)
        if not user_id:
            logger.warning(
                "billing_webhook_user_unresolved",
                event_type=event_type,
                subscription_id=subscription.id,
                customer_id=subscription.customer,
            )
            return WebhookOutcome(event_type=event_type, action=WebhookAction.DROPPED)

        fields = BillingFields(
            stripe_subscription_id=None,
            stripe_price_id=None,
            status=SubscriptionStatus.CANCELED,
            subscription_tier=SubscriptionTier.FREE,
        )
        if subscription.current_period_end is not None:
            fields.current_period_end = subscription.current_period_end
        return await self._write(event_type, user_id, fields, WebhookAction.CANCELED)

    async def _complete_checkout(self, event: CheckoutSessionCompletedEvent) -> WebhookOutcome:
        session = event.data
        if session.mode != "subscription" or not session.subscription:
            return WebhookOutcome(event_type=event.type, action=WebhookAction.IGNORED)

        raw = await self.stripe_service.retrieve_subscription(session.subscription)
        subscription = StripeSubscription.model_validate(raw)

        if not subscription.user_id and session.user_id:
            # Attach the id as early as possible so every later event carries it.
            await self.stripe_service.set_subscription_user_id(subscription.id, session.user_id)
            subscription = _with_user_id(subscription, session.user_id)

        return await self._apply_subscription(event.type, subscription)

    async def _refresh_from_invoice(self, event: InvoicePaymentSucceededEvent) -> WebhookOutcome:
        if not event.data.subscription:
            return WebhookOutcome(event_type=event.type, action=WebhookAction.IGNORED)
        raw = await self.stripe_service.retrieve_subscription(event.data.subscription)
        return await self._apply_subscription(event.type, StripeSubscription.model_validate(raw))

    async def _downgrade_after_failed_payment(
        self, event: InvoicePaymentFailedEvent
    ) -> WebhookOutcome:
        invoice = event.data
        # Only the invoice's subscription metadata identifies the user here.
        if not invoice.subscription or not invoice.user_id:
            logger.warning(
                "billing_webhook_user_unresolved",
                event_type=event.type,
                invoice_id=invoice.id,
                customer_id=invoice.customer,
            )
            return WebhookOutcome(event_type=event.type, action=WebhookAction.DROPPED)

        fields = BillingFields(
            status=SubscriptionStatus.FREE,
            stripe_price_id=None,
            subscription_tier=SubscriptionTier.FREE,
        )
        return await self._write(event.type, invoice.user_id, fields, WebhookAction.DOWNGRADED)

    async def _write(
        self,
        event_type: str,
        user_id: str,
        fields: BillingFields,
        action: WebhookAction,
    ) -> WebhookOutcome:
        updated = await self.repository.update_profile(user_id, fields.to_row())
        if updated is None:
            logger.warning("billing_webhook_profile_missing", event_type=event_type, user_id=user_id)
            return WebhookOutcome(event_type=event_type, action=WebhookAction.DROPPED, user_id=user_id)

        logger.info(
            "billing_profile_synced",
            event_type=event_type,
            user_id=user_id,
            action=action.value,
            status=updated.status,
            subscription_tier=updated.subscription_tier.value,
        )
        return WebhookOutcome(event_type=event_type, action=action, user_id=user_id)

    async def reconcile_user(self, user_id: str, email: str | None) -> WebhookOutcome:
        """
        Pull the user's subscription straight from Stripe and apply it.

        Raises:
            LookupError: no profile, Stripe customer or subscription was found.
            StripeServiceError: a Stripe call failed.
        """
        profile = await self.repository.get_profile(user_id)
        if profile is None:
            raise LookupError("Profile not found")

        if profile.stripe_customer_id:
            customer_ids = [profile.stripe_customer_id]
        elif email:
            customer_ids = await self.stripe_service.find_customer_ids_by_email(email)
        else:
            customer_ids = []
        if not customer_ids:
            raise LookupError("No Stripe customer found for this account")

        subscriptions = await self.stripe_service.list_subscriptions(customer_ids[0])
        if not subscriptions:
            raise LookupError("No subscriptions found for this account")

        # Stripe lists newest first; prefer one that still grants access.
        chosen = next(
            (
                sub
                for sub in subscriptions
                if sub.get("status") in {s.value for s in ACTIVE_SUBSCRIPTION_STATUSES}
            ),
            subscriptions[0],
        )
        subscription = StripeSubscription.model_validate(chosen)
        if not subscription.user_id:
            await self.stripe_service.set_subscription_user_id(subscription.id, user_id)
            subscription = _with_user_id(subscription, user_id)

        return await self._apply_subscription("manual.sync", subscription, user_id=user_id)
