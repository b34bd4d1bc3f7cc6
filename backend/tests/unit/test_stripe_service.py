"""Unit tests for Stripe service wrapper."""

import hashlib
import hmac
import json
import time
from types import SimpleNamespace

import pytest

from jobradar.config import StripeConfig
from jobradar.services import stripe_service as stripe_service_module
from jobradar.services.stripe_service import StripeService, StripeServiceError, WebhookSignatureError


class FakeStripeError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.user_message = message


class FakeSignatureVerificationError(FakeStripeError):
    pass


class FakeStripeModule:
    """Test double for stripe SDK."""

    StripeError = FakeStripeError
    SignatureVerificationError = FakeSignatureVerificationError

    def __init__(self):
        self.calls: list[tuple[str, tuple, dict]] = []
        self.fail_with: str | None = None
        self.checkout = SimpleNamespace(Session=SimpleNamespace(create=self._recorder("checkout.create", self._session("cs_1", "https://checkout.test/session"))))
        self.billing_portal = SimpleNamespace(
            Session=SimpleNamespace(create=self._recorder("portal.create", self._session("bps_1", "https://billing.test/portal")))
        )
        self.Customer = SimpleNamespace(
            create=self._recorder("customer.create", SimpleNamespace(id="cus_new")),
            list=self._recorder("customer.list", SimpleNamespace(data=[SimpleNamespace(id="cus_a"), SimpleNamespace(id="cus_b")])),
        )
        self.Subscription = SimpleNamespace(
            retrieve=self._recorder("subscription.retrieve", {"id": "sub_1", "status": "active"}),
            modify=self._recorder("subscription.modify", {"id": "sub_1"}),
            list=self._recorder("subscription.list", SimpleNamespace(data=[{"id": "sub_1", "status": "trialing"}])),
        )
        self.Webhook = SimpleNamespace(construct_event=self._construct_event)

    @staticmethod
    def _session(session_id: str, url: str):
        return SimpleNamespace(id=session_id, url=url)

    def _recorder(self, name: str, result):
        def _call(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            if self.fail_with:
                raise FakeStripeError(self.fail_with)
            return result

        return _call

    def kwargs_for(self, name: str) -> dict:
        return next(kwargs for call, _args, kwargs in self.calls if call == name)

    @staticmethod
    def _construct_event(payload, sig_header, secret):
        if sig_header == "bad":
            raise FakeSignatureVerificationError("No signatures found matching the expected signature")
        assert secret == "whsec_test"
        return json.loads(payload)


def _config(**overrides) -> StripeConfig:
    values = {
        "secret_key": "sk_test_123",
        "publishable_key": "pk_test_123",
        "webhook_secret": "whsec_test",
        "price_pro_monthly": "price_pro_test",
        "app_url": "https://app.test",
    }
    return StripeConfig(**(values | overrides))


@pytest.fixture
def fake(monkeypatch: pytest.MonkeyPatch) -> FakeStripeModule:
    fake_module = FakeStripeModule()
    monkeypatch.setattr(stripe_service_module, "stripe", fake_module)
    return fake_module


class TestStripeService:
    def test_requires_secret_key(self):
        with pytest.raises(ValueError, match="secret key"):
            StripeService(_config(secret_key=""))

    async def test_checkout_session_carries_user_metadata_and_trial(self, fake):
        service = StripeService(_config())

        result = await service.create_checkout_session(
            customer_id="cus_1", price_id="price_pro_test", user_id="u1", trial_days=3
        )

        kwargs = fake.kwargs_for("checkout.create")
        assert result == {"id": "cs_1", "url": "https://checkout.test/session"}
        assert kwargs["mode"] == "subscription"
        assert kwargs["api_key"] == "sk_test_123"
        assert kwargs["metadata"]["userId"] == "u1"
        assert kwargs["subscription_data"]["metadata"]["userId"] == "u1"
        assert kwargs["subscription_data"]["trial_period_days"] == 3
        assert kwargs["client_reference_id"] == "u1"
        assert kwargs["success_url"].startswith("https://app.test/dashboard?success=true")
        assert kwargs["cancel_url"] == "https://app.test/pricing?canceled=true"

    async def test_checkout_session_without_trial(self, fake):
        service = StripeService(_config())

        await service.create_checkout_session(customer_id="cus_1", price_id="price_pro_test", user_id="u1")

        assert "trial_period_days" not in fake.kwargs_for("checkout.create")["subscription_data"]

    async def test_creates_portal_session(self, fake):
        service = StripeService(_config())

        result = await service.create_portal_session(customer_id="cus_1")

        assert result["url"].startswith("https://billing.test")
        assert fake.kwargs_for("portal.create")["return_url"] == "https://app.test/dashboard"

    async def test_reuses_existing_customer(self, fake):
        service = StripeService(_config())

        customer_id, created = await service.ensure_customer(user_id="u1", email="u1@example.com", customer_id="cus_1")

        assert (customer_id, created) == ("cus_1", False)
        assert fake.calls == []

    async def test_creates_customer_with_user_metadata(self, fake):
        service = StripeService(_config())

        customer_id, created = await service.ensure_customer(user_id="u1", email="u1@example.com")

        assert (customer_id, created) == ("cus_new", True)
        kwargs = fake.kwargs_for("customer.create")
        assert kwargs["metadata"] == {"supabase_user_id": "u1"}
        assert kwargs["email"] == "u1@example.com"

    async def test_stripe_errors_are_wrapped(self, fake):
        fake.fail_with = "Your card was declined."
        service = StripeService(_config())

        with pytest.raises(StripeServiceError, match="Your card was declined"):
            await service.create_portal_session(customer_id="cus_1")

    async def test_sets_subscription_user_id(self, fake):
        service = StripeService(_config())

        await service.set_subscription_user_id("sub_1", "u1")

        name, args, kwargs = fake.calls[0]
        assert name == "subscription.modify"
        assert args == ("sub_1",)
        assert kwargs["metadata"] == {"userId": "u1"}

    async def test_lookup_helpers(self, fake):
        service = StripeService(_config())

        customers = await service.find_customer_ids_by_email("u1@example.com")
        subscriptions = await service.list_subscriptions("cus_a")

        assert customers == ["cus_a", "cus_b"]
        assert subscriptions == [{"id": "sub_1", "status": "trialing"}]
        assert fake.kwargs_for("subscription.list")["status"] == "all"


class TestWebhookVerification:
    def test_verifies_webhook_event(self, fake):
        service = StripeService(_config())

        event = service.verify_webhook_event(b'{"id": "evt_1", "type": "invoice.paid"}', "sig_ok")

        assert event["id"] == "evt_1"

    def test_rejects_missing_signature(self, fake):
        service = StripeService(_config())

        with pytest.raises(WebhookSignatureError, match="Missing Stripe-Signature"):
            service.verify_webhook_event(b"{}", None)

    def test_rejects_bad_signature(self, fake):
        service = StripeService(_config())

        with pytest.raises(WebhookSignatureError):
            service.verify_webhook_event(b"{}", "bad")

    def test_missing_secret_is_not_a_signature_error(self, fake):
        service = StripeService(_config(webhook_secret=""))

        assert service.webhooks_configured is False
        with pytest.raises(ValueError) as exc_info:
            service.verify_webhook_event(b"{}", "sig")
        assert not isinstance(exc_info.value, WebhookSignatureError)


def _sign(payload: bytes, secret: str, timestamp: int) -> str:
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


class TestRealSignatureVerification:
    """Runs the real stripe SDK verifier against locally signed payloads."""

    payload = json.dumps(
        {
            "id": "evt_real",
            "object": "event",
            "type": "customer.subscription.updated",
            "data": {"object": {"id": "sub_1", "customer": "cus_1", "status": "active"}},
        }
    ).encode()

    def test_valid_signature_is_accepted(self):
        service = StripeService(_config())
        header = _sign(self.payload, "whsec_test", int(time.time()))

        event = service.verify_webhook_event(self.payload, header)

        assert event["id"] == "evt_real"
        assert event["type"] == "customer.subscription.updated"

    def test_tampered_body_is_rejected(self):
        service = StripeService(_config())
        header = _sign(self.payload, "whsec_test", int(time.time()))
        tampered = self.payload.replace(b'"active"', b'"trialing"')

        with pytest.raises(WebhookSignatureError):
            service.verify_webhook_event(tampered, header)

    def test_wrong_secret_is_rejected(self):
        service = StripeService(_config())
        header = _sign(self.payload, "whsec_other", int(time.time()))

        with pytest.raises(WebhookSignatureError):
            service.verify_webhook_event(self.payload, header)
