"""
Entitlement resolution.

resolve_entitlements() is a pure function of a profile row and the plan
catalog: privileged accounts short-circuit, everyone else is judged by the
Stripe fields the billing webhook keeps on the profile. EntitlementService
adds the profile read and turns every read failure into the free view so
callers never block on billing state.
"""

from datetime import timedelta

import structlog

from jobradar.config import BillingConfig
from jobradar.constants import UNLIMITED
from jobradar.models.billing import (
    ACTIVE_SUBSCRIPTION_STATUSES,
    EntitlementCheck,
    EntitlementView,
    SubscriptionStatus,
)
from jobradar.models.profile import Profile, SubscriptionTier
from jobradar.plans import FREE_PLAN_ID, PRIVILEGED_FEATURES, PRIVILEGED_PLAN_ID, PRO_PLAN_ID, PlanCatalog
from jobradar.services.profile_store import ProfileRepository

logger = structlog.get_logger(__name__)

PLAN_LIMITS: dict[str, int] = {
    FREE_PLAN_ID: 0,
    PRO_PLAN_ID: UNLIMITED,
}


def privileged_view() -> EntitlementView:
    return EntitlementView(
        is_active=True,
        is_trial=False,
        is_privileged=True,
        plan_id=PRIVILEGED_PLAN_ID,
        plan_name="Privileged Access",
        status=PRIVILEGED_PLAN_ID,
        can_create_queries=True,
        can_resume_queries=True,
        can_fetch_new_jobs=True,
        max_queries=UNLIMITED,
        max_jobs_per_month=UNLIMITED,
        features=list(PRIVILEGED_FEATURES),
        limitations=[],
    )


def free_view(catalog: PlanCatalog) -> EntitlementView:
    """The view for anonymous users and unreadable profiles."""
    plan = catalog.free
    return EntitlementView(
        is_active=False,
        is_trial=False,
        is_privileged=False,
        plan_id=FREE_PLAN_ID,
        plan_name=plan.name,
        status=FREE_PLAN_ID,
        can_create_queries=False,
        can_resume_queries=False,
        can_fetch_new_jobs=False,
        max_queries=0,
        max_jobs_per_month=0,
        features=list(plan.features),
        limitations=list(plan.limitations),
    )


def _is_short_period(profile: Profile, config: BillingConfig) -> bool:
    if not config.short_period_is_trial:
        return False
    if profile.current_period_start is None or profile.current_period_end is None:
        return False
    period = profile.current_period_end - profile.current_period_start
    return period <= timedelta(days=config.short_period_trial_days)


def resolve_entitlements(
    profile: Profile,
    catalog: PlanCatalog,
    config: BillingConfig | None = None,
) -> EntitlementView:
    """Derive the EntitlementView for a profile. No I/O, no side effects."""
    config = config or BillingConfig()

    if profile.account_type.is_privileged:
        return privileged_view()

    status = SubscriptionStatus.parse(profile.status)
    has_subscription = bool(profile.stripe_subscription_id)

    is_active = has_subscription and status in ACTIVE_SUBSCRIPTION_STATUSES
    is_trial = has_subscription and (
        status == SubscriptionStatus.TRIALING
        or (status == SubscriptionStatus.ACTIVE and _is_short_period(profile, config))
    )

    if is_active or is_trial:
        matched = catalog.by_price_id(profile.stripe_price_id)
        plan_id = matched.id if matched else PRO_PLAN_ID
    elif profile.subscription_tier == SubscriptionTier.PRO:
        plan_id = PRO_PLAN_ID
    else:
        plan_id = FREE_PLAN_ID

    plan = catalog.by_id(plan_id) or catalog.free
    limit = PLAN_LIMITS.get(plan_id, 0)
    allowed = is_active or is_trial

    return EntitlementView(
        is_active=is_active,
        is_trial=is_trial,
        is_privileged=False,
        plan_id=plan_id,
        plan_name=plan.name,
        status=profile.status or plan_id,
        current_period_end=profile.current_period_end,
        cancel_at=profile.cancel_at,
        trial_ends_at=profile.current_period_end if is_trial else None,
        can_create_queries=allowed,
        can_resume_queries=allowed,
        can_fetch_new_jobs=allowed,
        max_queries=limit,
        max_jobs_per_month=limit,
        features=list(plan.features),
        limitations=list(plan.limitations),
    )


def check_can_create_query(view: EntitlementView) -> EntitlementCheck:
    if view.is_privileged or view.can_create_queries:
        return EntitlementCheck(allowed=True, remaining=view.max_queries)
    if view.plan_id == FREE_PLAN_ID:
        return EntitlementCheck(
            allowed=False,
            reason=(
                "Free accounts cannot create new queries. "
                "Upgrade to Pro to create and manage queries."
            ),
            needs_upgrade=True,
        )
    return EntitlementCheck(allowed=False, reason="Your plan does not allow creating queries")


def check_can_resume_query(view: EntitlementView) -> EntitlementCheck:
    if view.is_privileged or view.can_resume_queries:
        return EntitlementCheck(allowed=True)
    return EntitlementCheck(
        allowed=False,
        reason="Free accounts cannot resume queries. Upgrade to Pro to manage your queries.",
        needs_upgrade=view.plan_id == FREE_PLAN_ID,
    )


class EntitlementService:
    """Loads profiles and resolves entitlements, absorbing read failures."""

    def __init__(
        self,
        repository: ProfileRepository,
        catalog: PlanCatalog,
        config: BillingConfig | None = None,
    ) -> None:
        self.repository = repository
        self.catalog = catalog
        self.config = config or BillingConfig()

    async def get_entitlements(self, user_id: str | None) -> EntitlementView:
        if not user_id:
            return free_view(self.catalog)

        try:
            profile = await self.repository.get_profile(user_id)
        except Exception as e:
            logger.warning("entitlements_profile_unavailable", user_id=user_id, error=str(e))
            return free_view(self.catalog)

        if profile is None:
            logger.info("entitlements_profile_missing", user_id=user_id)
            return free_view(self.catalog)

        return resolve_entitlements(profile, self.catalog, self.config)
