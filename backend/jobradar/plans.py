"""
Subscription plan catalog.

Plans are static configuration; only the Stripe price id and the trial
length come from settings so test and live mode can differ.
"""

from jobradar.config import BillingConfig, StripeConfig
from jobradar.models.billing import Plan

FREE_PLAN_ID = "free"
PRO_PLAN_ID = "pro"
PRIVILEGED_PLAN_ID = "privileged"

PRIVILEGED_FEATURES = [
    "Unlimited active search queries",
    "Unlimited jobs per month",
    "Real-time job fetching",
    "Email notifications",
    "Resume and pause queries",
    "Export to all formats",
    "Advanced filters",
    "Admin controls",
    "Priority support",
]


class PlanCatalog:
    """Lookup over the configured plans."""

    def __init__(self, plans: list[Plan]) -> None:
        if not plans:
            raise ValueError("Plan catalog cannot be empty")
        self.plans = list(plans)

    def by_id(self, plan_id: str) -> Plan | None:
        return next((plan for plan in self.plans if plan.id == plan_id), None)

    def by_price_id(self, price_id: str | None) -> Plan | None:
        """Exact match on a non-empty price id."""
        if not price_id:
            return None
        return next((plan for plan in self.plans if plan.price_id == price_id), None)

    @property
    def free(self) -> Plan:
        return self.by_id(FREE_PLAN_ID) or self.plans[0]


def build_plan_catalog(stripe_config: StripeConfig, billing_config: BillingConfig) -> PlanCatalog:
    return PlanCatalog(
        [
            Plan(
                id=FREE_PLAN_ID,
                name="Free",
                description="Limited access after trial",
                features=[
                    "View previously fetched jobs",
                    "Export saved jobs to CSV",
                    "Basic search and filters",
                ],
                limitations=[
                    "Cannot create new queries",
                    "Cannot resume paused queries",
                    "No new job fetching",
                    "No email notifications",
                ],
            ),
            Plan(
                id=PRO_PLAN_ID,
                name="Pro",
                description="Full access to all features",
                price_id=stripe_config.price_pro_monthly,
                price=10,
                trial_days=billing_config.pro_trial_days or None,
                features=[
                    "Unlimited active search queries",
                    "Unlimited jobs per month",
                    "Real-time job fetching",
                    "Email notifications",
                    "Resume and pause queries",
                    "Export to CSV & Excel",
                    "Advanced filters",
                    "Priority support",
                ],
            ),
        ]
    )
