"""
Shared test fixtures for the JobRadar backend test suite.
"""

from datetime import UTC, datetime
from types import SimpleNamespace

import pytest
import structlog
from fastapi.testclient import TestClient

from jobradar.auth import AuthenticatedUser
from jobradar.config import BillingConfig, StripeConfig
from jobradar.models.profile import AccountType, Profile, SubscriptionTier
from jobradar.plans import PlanCatalog, build_plan_catalog

PRO_PRICE_ID = "price_pro_test"


@pytest.fixture(autouse=True)
def _set_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests off real Supabase and Stripe regardless of the local .env."""
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.setenv("SUPABASE_SECRET_KEY", "")
    monkeypatch.setenv("STRIPE__SECRET_KEY", "")
    monkeypatch.setenv("STRIPE__PUBLISHABLE_KEY", "")
    monkeypatch.setenv("STRIPE__PRICE_PRO_MONTHLY", PRO_PRICE_ID)


@pytest.fixture(autouse=True)
def _configure_structlog_for_tests():
    """Configure structlog for tests using a simple, deterministic setup."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(0),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def client() -> TestClient:
    """FastAPI TestClient wrapping the main application.

    The lifespan does not run, so tests put the services they need on
    client.app.state themselves.
    """
    # Clear the lru_cache so settings pick up test env vars
    from jobradar.config import get_settings

    get_settings.cache_clear()

    from jobradar.main import app

    for name in (
        "supabase",
        "profile_repository",
        "plan_catalog",
        "entitlement_service",
        "stripe_service",
        "billing_webhook_handler",
        "admin_service",
    ):
        setattr(app.state, name, None)

    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


class FakeQuery:
    """Records a PostgREST builder chain; execute() pops the next scripted response."""

    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table = table
        self.calls: list[tuple[str, tuple, dict]] = []

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)

        def _method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return _method

    def called(self, name: str) -> list[tuple]:
        return [args for call, args, _kwargs in self.calls if call == name]

    def kwargs_for(self, name: str) -> dict:
        return next(kwargs for call, _args, kwargs in self.calls if call == name)

    async def execute(self):
        self.client.executed.append(self)
        queue = self.client.responses.get(self.table)
        result = queue.pop(0) if queue else SimpleNamespace(data=[], count=None)
        if isinstance(result, Exception):
            raise result
        return result


class FakeSupabase:
    """Stand-in for the Supabase AsyncClient table API."""

    def __init__(self):
        self.responses: dict[str, list] = {}
        self.executed: list[FakeQuery] = []

    def respond(self, table: str, data: list | dict | None = None, count: int | None = None) -> None:
        self.responses.setdefault(table, []).append(
            SimpleNamespace(data=[] if data is None else data, count=count)
        )

    def fail(self, table: str, error: Exception) -> None:
        self.responses.setdefault(table, []).append(error)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def queries_on(self, table: str) -> list[FakeQuery]:
        return [query for query in self.executed if query.table == table]


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def catalog() -> PlanCatalog:
    return build_plan_catalog(StripeConfig(price_pro_monthly=PRO_PRICE_ID), BillingConfig())


@pytest.fixture
def standard_user() -> AuthenticatedUser:
    return AuthenticatedUser(id="user-1", email="user@example.com")


def _make_profile(user_id: str = "user-1", **fields) -> Profile:
    defaults = {
        "id": user_id,
        "account_type": AccountType.STANDARD,
        "subscription_tier": SubscriptionTier.FREE,
        "created_at": datetime(2025, 1, 1, tzinfo=UTC),
    }
    return Profile.model_validate(defaults | fields)


@pytest.fixture
def make_profile():
    """Factory for profile rows with sensible defaults for billing tests."""
    return _make_profile


@pytest.fixture
def login(client: TestClient):
    """Authenticate every request of the test client as the given user."""
    from jobradar.auth import get_current_user

    def _login(user: AuthenticatedUser) -> None:
        async def _current_user() -> AuthenticatedUser:
            return user

        client.app.dependency_overrides[get_current_user] = _current_user

    return _login
