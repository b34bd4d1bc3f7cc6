"""Billing API endpoints."""

import structlog
from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from jobradar.auth import AuthenticatedUser, CurrentUser
from jobradar.dependencies import get_entitlement_service, get_profile_repository
from jobradar.models.billing import EntitlementView, Plan, WebhookAction
from jobradar.models.stripe_events import parse_webhook_event
from jobradar.plans import FREE_PLAN_ID, PlanCatalog
from jobradar.services.billing_webhooks import BillingWebhookHandler
from jobradar.services.stripe_service import StripeService, StripeServiceError, WebhookSignatureError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])


class CheckoutRequest(BaseModel):
    """Checkout session request. Accepts the frontend's camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    price_id: str = Field(alias="priceId", min_length=1)
    user_id: str | None = Field(default=None, alias="userId")
    user_email: str | None = Field(default=None, alias="userEmail")


class CheckoutResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(serialization_alias="sessionId")
    url: str


class PortalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(default=None, alias="userId")


class PortalResponse(BaseModel):
    url: str


class WebhookResponse(BaseModel):
    received: bool


class SyncResponse(BaseModel):
    action: WebhookAction
    entitlements: EntitlementView


def _get_stripe_service(request: Request) -> StripeService:
    service = getattr(request.app.state, "stripe_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Stripe is not configured")
    return service


def _get_webhook_handler(request: Request) -> BillingWebhookHandler:
    handler = getattr(request.app.state, "billing_webhook_handler", None)
    if handler is None:
        raise HTTPException(status_code=503, detail="Billing unavailable: database is not configured")
    return handler


def _get_plan_catalog(request: Request) -> PlanCatalog:
    catalog = getattr(request.app.state, "plan_catalog", None)
    if catalog is None:
        raise HTTPException(status_code=503, detail="Plan catalog unavailable")
    return catalog


def _ensure_same_user(user: AuthenticatedUser, requested_user_id: str | None) -> None:
    if requested_user_id and requested_user_id != user.id:
        raise HTTPException(status_code=403, detail="Cannot manage billing for another user")


@router.post("/webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
) -> WebhookResponse:
    """Verify a Stripe webhook and reconcile the affected profile."""
    stripe_service = _get_stripe_service(request)
    handler = _get_webhook_handler(request)
    if not stripe_service.webhooks_configured:
        raise HTTPException(status_code=503, detail="Stripe webhook secret is not configured")

    payload = await request.body()
    try:
        raw_event = stripe_service.verify_webhook_event(payload, stripe_signature)
    except WebhookSignatureError as e:
        logger.warning("billing_webhook_signature_invalid", error=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid webhook payload: {e}")

    try:
        event = parse_webhook_event(raw_event)
    except ValueError as e:
        logger.warning(
            "billing_webhook_payload_invalid",
            event_id=raw_event.get("id"),
            event_type=raw_event.get("type"),
            error=str(e),
        )
        raise HTTPException(status_code=400, detail="Malformed Stripe event payload")

    try:
        outcome = await handler.handle(event)
    except StripeServiceError as e:
        logger.error("billing_webhook_failed", event_id=event.id, event_type=event.type, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))

    logger.info(
        "billing_webhook_processed",
        event_id=event.id,
        event_type=event.type,
        action=outcome.action.value,
        user_id=outcome.user_id,
    )
    return WebhookResponse(received=True)


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout_session(
    body: CheckoutRequest,
    request: Request,
    user: CurrentUser,
) -> CheckoutResponse:
    """Create a subscription-mode Stripe Checkout session for a paid plan."""
    stripe_service = _get_stripe_service(request)
    catalog = _get_plan_catalog(request)
    repository = get_profile_repository(request)
    _ensure_same_user(user, body.user_id)

    plan = catalog.by_price_id(body.price_id)
    if plan is None or plan.id == FREE_PLAN_ID:
        raise HTTPException(status_code=400, detail="Invalid price ID")

    profile = await repository.get_profile(user.id)
    try:
        customer_id, created = await stripe_service.ensure_customer(
            user_id=user.id,
            email=body.user_email or user.email,
            customer_id=profile.stripe_customer_id if profile else None,
        )
        if created:
            await repository.update_profile(user.id, {"stripe_customer_id": customer_id})
            logger.info("stripe_customer_created", user_id=user.id, customer_id=customer_id)

        session = await stripe_service.create_checkout_session(
            customer_id=customer_id,
            price_id=plan.price_id,
            user_id=user.id,
            trial_days=plan.trial_days,
        )
    except StripeServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    logger.info("checkout_session_created", user_id=user.id, plan_id=plan.id, session_id=session["id"])
    return CheckoutResponse(session_id=session["id"], url=session["url"])


@router.post("/portal", response_model=PortalResponse)
async def create_portal_session(
    request: Request,
    user: CurrentUser,
    body: PortalRequest | None = None,
) -> PortalResponse:
    """Create a Stripe Customer Portal session for the caller."""
    stripe_service = _get_stripe_service(request)
    repository = get_profile_repository(request)
    _ensure_same_user(user, body.user_id if body else None)

    profile = await repository.get_profile(user.id)
    if profile is None or not profile.stripe_customer_id:
        raise HTTPException(status_code=404, detail="No billing account found for this user")

    try:
        portal = await stripe_service.create_portal_session(customer_id=profile.stripe_customer_id)
    except StripeServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return PortalResponse(url=portal["url"])


@router.get("/entitlements", response_model=EntitlementView)
async def get_entitlements(request: Request, user: CurrentUser) -> EntitlementView:
    """Return the caller's current entitlements."""
    service = get_entitlement_service(request)
    return await service.get_entitlements(user.id)


@router.get("/plans", response_model=list[Plan])
async def list_plans(request: Request) -> list[Plan]:
    return _get_plan_catalog(request).plans


@router.post("/sync", response_model=SyncResponse)
async def sync_subscription(request: Request, user: CurrentUser) -> SyncResponse:
    """Re-read the caller's subscription from Stripe and apply it to their profile."""
    handler = _get_webhook_handler(request)
    entitlement_service = get_entitlement_service(request)

    try:
        outcome = await handler.reconcile_user(user.id, user.email)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StripeServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    logger.info("billing_manual_sync", user_id=user.id, action=outcome.action.value)
    entitlements = await entitlement_service.get_entitlements(user.id)
    return SyncResponse(action=outcome.action, entitlements=entitlements)
