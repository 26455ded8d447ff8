"""Tests for plan usage limits and the Stripe checkout/webhook handlers."""

import hashlib
import hmac
import json
import time
from datetime import date

import pytest
import stripe

from winqer.config import settings
from winqer.core.errors import ConfigurationError, QuotaExceededError, ValidationError
from winqer.models.store_models import PlanType, Store
from winqer.services import billing

TODAY = date(2024, 3, 10)


class TestUsage:
    def test_free_plan_has_one_lifetime_use(self, session, store):
        status = billing.consume_usage(session, store, TODAY)
        assert status["usage"] == 1
        assert status["can_use"] is False
        assert status["period"] == "lifetime"

        with pytest.raises(QuotaExceededError) as exc:
            billing.consume_usage(session, store, date(2024, 3, 11))
        assert "無料プラン" in exc.value.message

    def test_pro_plan_resets_daily(self, session, store):
        store.plan_type = PlanType.PRO
        store.usage_count = 5
        store.total_usage_count = 40
        store.last_usage_date = date(2024, 3, 9)
        session.add(store)
        session.commit()

        status = billing.consume_usage(session, store, TODAY)
        assert status == {
            "plan_type": "pro",
            "usage": 1,
            "limit": 5,
            "period": "daily",
            "remaining": 4,
            "can_use": True,
        }
        assert store.total_usage_count == 41

    def test_pro_plan_daily_limit(self, session, store):
        store.plan_type = PlanType.PRO
        store.usage_count = 5
        store.last_usage_date = TODAY
        session.add(store)
        session.commit()

        with pytest.raises(QuotaExceededError) as exc:
            billing.consume_usage(session, store, TODAY)
        assert "本日の利用上限（5回）" in exc.value.message

    def test_status_does_not_consume(self, store):
        assert billing.usage_status(store, TODAY)["remaining"] == 1
        assert store.total_usage_count == 0


class TestCheckout:
    def test_requires_secret_key(self, monkeypatch, store):
        monkeypatch.setattr(settings, "stripe_secret_key", None)
        with pytest.raises(ConfigurationError):
            billing.create_checkout_session(store, "price_1", "https://app.test")

    def test_creates_subscription_session(self, monkeypatch, store):
        captured = {}

        def fake_create(**kwargs):
            captured.update(kwargs)
            return {"url": "https://checkout.stripe.test/s/1"}

        monkeypatch.setattr(settings, "stripe_secret_key", "sk_test")
        monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

        url = billing.create_checkout_session(store, "price_1", "https://app.test/")

        assert url == "https://checkout.stripe.test/s/1"
        assert captured["mode"] == "subscription"
        assert captured["client_reference_id"] == store.id
        assert captured["metadata"] == {"storeId": store.id}
        assert captured["line_items"] == [{"price": "price_1", "quantity": 1}]
        assert captured["success_url"] == f"https://app.test/dashboard/stores/{store.id}?upgrade=success"


class TestWebhook:
    @pytest.fixture(autouse=True)
    def webhook_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")

    def _event(self, monkeypatch, event):
        monkeypatch.setattr(stripe.Webhook, "construct_event", lambda payload, sig, secret: event)

    def test_bad_signature(self, monkeypatch, session):
        def reject(payload, sig, secret):
            raise stripe.SignatureVerificationError("bad", sig)

        monkeypatch.setattr(stripe.Webhook, "construct_event", reject)
        with pytest.raises(ValidationError):
            billing.handle_webhook(session, b"{}", "t=1,v1=bad")

    def test_checkout_completed_upgrades(self, monkeypatch, session, store):
        store.usage_count = 3
        session.add(store)
        session.commit()
        self._event(
            monkeypatch,
            {
                "type": "checkout.session.completed",
                "data": {
                    "object": {
                        "client_reference_id": store.id,
                        "customer": "cus_1",
                        "subscription": "sub_1",
                    }
                },
            },
        )

        assert billing.handle_webhook(session, b"{}", "sig") == {"received": True}
        session.refresh(store)
        assert store.plan_type == PlanType.PRO
        assert store.stripe_customer_id == "cus_1"
        assert store.stripe_subscription_id == "sub_1"
        assert store.usage_count == 0

    def test_subscription_deleted_downgrades(self, monkeypatch, session, store):
        store.plan_type = PlanType.PRO
        store.stripe_subscription_id = "sub_1"
        session.add(store)
        session.commit()
        self._event(
            monkeypatch,
            {"type": "customer.subscription.deleted", "data": {"object": {"id": "sub_1"}}},
        )

        billing.handle_webhook(session, b"{}", "sig")
        refreshed = session.get(Store, store.id)
        assert refreshed.plan_type == PlanType.FREE
        assert refreshed.stripe_subscription_id is None

    def test_other_events_are_acknowledged(self, monkeypatch, session):
        self._event(monkeypatch, {"type": "invoice.paid", "data": {"object": {}}})
        assert billing.handle_webhook(session, b"{}", "sig") == {"received": True}


def signed(payload: dict, secret: str = "whsec_test"):
    """Body and Stripe-Signature header as Stripe would send them."""
    body = json.dumps(payload)
    timestamp = int(time.time())
    digest = hmac.new(
        secret.encode(), f"{timestamp}.{body}".encode(), hashlib.sha256
    ).hexdigest()
    return body.encode(), f"t={timestamp},v1={digest}"


class TestSignedWebhook:
    """Events verified by the real stripe.Webhook.construct_event."""

    @pytest.fixture(autouse=True)
    def webhook_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")

    def test_checkout_completed_upgrades(self, session, store):
        body, signature = signed(
            {
                "id": "evt_1",
                "object": "event",
                "type": "checkout.session.completed",
                "data": {
                    "object": {
                        "id": "cs_1",
                        "object": "checkout.session",
                        "client_reference_id": store.id,
                        "customer": "cus_1",
                        "subscription": "sub_1",
                        "metadata": {"storeId": store.id},
                    }
                },
            }
        )

        assert billing.handle_webhook(session, body, signature) == {"received": True}
        session.refresh(store)
        assert store.plan_type == PlanType.PRO
        assert store.stripe_subscription_id == "sub_1"

    def test_subscription_deleted_downgrades(self, session, store):
        store.plan_type = PlanType.PRO
        store.stripe_subscription_id = "sub_1"
        session.add(store)
        session.commit()
        body, signature = signed(
            {
                "id": "evt_2",
                "object": "event",
                "type": "customer.subscription.deleted",
                "data": {"object": {"id": "sub_1", "object": "subscription"}},
            }
        )

        billing.handle_webhook(session, body, signature)
        session.refresh(store)
        assert store.plan_type == PlanType.FREE

    def test_wrong_secret_rejected(self, session):
        body, signature = signed({"id": "evt_3", "object": "event"}, secret="whsec_other")
        with pytest.raises(ValidationError):
            billing.handle_webhook(session, body, signature)


class TestUsageCheck:
    def test_check_does_not_consume(self, store):
        billing.require_usage_available(store, TODAY)
        assert store.total_usage_count == 0

    def test_check_raises_at_limit(self, store):
        store.total_usage_count = 1
        with pytest.raises(QuotaExceededError):
            billing.require_usage_available(store, TODAY)
