"""
JobRadar Backend - Main FastAPI Application.

This is the entry point for the JobRadar backend API. It serves the job-alert
dashboard (queries, jobs, notifications), Stripe billing and the admin
user-management endpoints.

Run with:
    uvicorn jobradar.main:app --reload
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from supabase import acreate_client
from supabase._async.client import AsyncClient as AsyncSupabaseClient

from jobradar.api.v1.admin import router as admin_router
from jobradar.api.v1.billing import router as billing_router
from jobradar.api.v1.jobs import router as jobs_router
from jobradar.api.v1.locations import router as locations_router
from jobradar.api.v1.notifications import router as notifications_router
from jobradar.api.v1.profile import router as profile_router
from jobradar.api.v1.queries import router as queries_router
from jobradar.config import get_settings
from jobradar.constants import API_TITLE, API_VERSION
from jobradar.errors import register_exception_handlers
from jobradar.logging_config import setup_logging
from jobradar.middleware import RequestContextMiddleware
from jobradar.plans import build_plan_catalog
from jobradar.services.admin_service import AdminService
from jobradar.services.billing_webhooks import BillingWebhookHandler
from jobradar.services.entitlements import EntitlementService
from jobradar.services.profile_store import SupabaseProfileRepository
from jobradar.services.stripe_service import StripeService

# Get settings before logging setup so we know the debug flag
settings = get_settings()

# Configure logging
setup_logging(settings.debug)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan event handler for startup and shutdown."""
    logger.info("api_startup", cors_origins=settings.cors_origins)

    # Initialize Supabase async client
    supabase_client: AsyncSupabaseClient | None = None
    if settings.supabase_url and settings.supabase_secret_key:
        try:
            supabase_client = await acreate_client(
                settings.supabase_url,
                settings.supabase_secret_key,
            )
            logger.info("supabase_configured")
        except Exception as e:
            logger.warning("supabase_init_failed", error=str(e))
    else:
        logger.warning("supabase_not_configured", detail="Auth and data endpoints will return 503")

    catalog = build_plan_catalog(settings.stripe, settings.billing)

    # Everything that reads or writes profiles needs the database; without it
    # these stay None and their routes answer 503.
    profile_repository: SupabaseProfileRepository | None = None
    entitlement_service: EntitlementService | None = None
    admin_service: AdminService | None = None
    if supabase_client is not None:
        profile_repository = SupabaseProfileRepository(supabase_client)
        entitlement_service = EntitlementService(profile_repository, catalog, settings.billing)
        admin_service = AdminService(profile_repository, settings.admin)

    stripe_service: StripeService | None = None
    webhook_handler: BillingWebhookHandler | None = None
    if settings.stripe.is_configured:
        stripe_service = StripeService(settings.stripe)
        if not stripe_service.webhooks_configured:
            logger.warning("stripe_webhook_secret_missing", detail="Webhook endpoint will return 503")
        logger.info("stripe_configured")
    else:
        logger.warning("stripe_not_configured", detail="Billing endpoints will return 503")

    if stripe_service is not None and profile_repository is not None:
        webhook_handler = BillingWebhookHandler(profile_repository, stripe_service)
    elif stripe_service is not None:
        logger.warning("billing_webhooks_disabled", detail="No database; webhook endpoint will return 503")

    _app.state.supabase = supabase_client
    _app.state.profile_repository = profile_repository
    _app.state.plan_catalog = catalog
    _app.state.entitlement_service = entitlement_service
    _app.state.stripe_service = stripe_service
    _app.state.billing_webhook_handler = webhook_handler
    _app.state.admin_service = admin_service

    logger.info("services_initialized")

    yield

    logger.info("api_shutdown")


# Create FastAPI app
app = FastAPI(
    title=API_TITLE,
    description=(
        "Job-alert SaaS API: saved job searches, discovered postings, "
        "notifications and Stripe-backed subscriptions."
    ),
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

register_exception_handlers(app)

# Added first, so CORS wraps it and answers preflight requests on its own.
app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(billing_router, prefix="/api/v1")
app.include_router(profile_router, prefix="/api/v1")
app.include_router(queries_router, prefix="/api/v1")
app.include_router(locations_router, prefix="/api/v1")
app.include_router(jobs_router, prefix="/api/v1")
app.include_router(notifications_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/")
async def root() -> dict:
    """Root endpoint with API info."""
    return {
        "name": API_TITLE,
        "version": API_VERSION,
        "description": "Job-alert SaaS API",
        "docs": "/docs",
    }


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}
