"""API tests through the FastAPI app with auth and database overridden."""

import stripe
from fastapi.testclient import TestClient

from conftest import OWNER_ID, PROVIDER_ID, STRANGER_ID, VIEWER_ID
from winqer.config import settings
from winqer.models.store_models import PlanType, Store
from winqer.services import creative_service, store_service


class TestSystem:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"]["backend"] == "sqlite"

    def test_debug_db(self, client):
        body = client.get("/debug/db").json()
        assert body["connected"] is True
        assert body["url"].startswith("sqlite")

    def test_me_reports_role(self, client, profiles):
        response = client.get("/auth/me")
        assert response.status_code == 200
        body = response.json()
        assert body["user"]["id"] == OWNER_ID
        assert body["isAdmin"] is False
        assert body["role"] == "CLIENT_ADMIN"


class TestStores:
    def test_list_only_visible_stores(self, client, store, act_as):
        assert [s["id"] for s in client.get("/stores").json()["stores"]] == [store.id]

        act_as(STRANGER_ID)
        assert client.get("/stores").json()["stores"] == []

    def test_stranger_is_forbidden(self, client, store, act_as):
        act_as(STRANGER_ID)
        response = client.get(f"/stores/{store.id}")
        assert response.status_code == 403
        assert response.json()["success"] is False

    def test_unknown_store(self, client, profiles):
        response = client.get("/stores/missing")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Store not found"}

    def test_store_view_hides_secrets(self, client, store):
        data = client.get(f"/stores/{store.id}").json()["store"]
        assert data["name"] == "渋谷店"
        assert "meta_access_token" not in data
        assert data["has_meta_access_token"] is True

    def test_create_and_patch(self, client, profiles):
        created = client.post("/stores", json={"name": "新宿店", "industry": "整体"}).json()
        store_id = created["store"]["id"]
        assert created["store"]["user_id"] == OWNER_ID

        response = client.patch(f"/stores/{store_id}", json={"cv_event_name": "予約"})
        assert response.status_code == 200
        assert response.json()["store"]["cv_event_name"] == "予約"
        assert response.json()["store"]["industry"] == "整体"

    def test_viewer_cannot_patch(self, client, store, act_as):
        act_as(VIEWER_ID)
        response = client.patch(f"/stores/{store.id}", json={"name": "x"})
        assert response.status_code == 403

    def test_secrets(self, client, session, store):
        response = client.put(
            f"/stores/{store.id}/secrets", json={"gemini_api_key": "gm-1", "openai_api_key": ""}
        )
        assert response.json() == {"success": True, "updated": ["gemini_api_key", "openai_api_key"]}
        session.refresh(store)
        assert store.gemini_api_key == "gm-1"
        assert store.openai_api_key is None

    def test_usage(self, client, store):
        body = client.get(f"/stores/{store.id}/usage").json()
        assert body["plan_type"] == "free"
        assert body["remaining"] == 1


class TestAdmin:
    def test_client_is_not_admin(self, client, store):
        response = client.post("/admin/stores", json={"name": "x"})
        assert response.status_code == 403

    def test_create_assign_and_delete(self, client, session, profiles, act_as):
        act_as(PROVIDER_ID)
        store_id = client.post("/admin/stores", json={"name": "梅田店"}).json()["store"]["id"]

        response = client.post(
            f"/admin/stores/{store_id}/assignments",
            json={"email": "viewer@example.com", "role": "STORE_VIEWER"},
        )
        assert response.json()["assignment"]["user_id"] == VIEWER_ID

        rows = client.get(f"/admin/stores/{store_id}/assignments").json()["assignments"]
        assert [r["user_id"] for r in rows] == [VIEWER_ID]

        assert client.delete(f"/admin/stores/{store_id}").json() == {"success": True}
        assert session.get(Store, store_id) is None

    def test_assignment_needs_a_target(self, client, store, act_as):
        act_as(PROVIDER_ID)
        response = client.post(f"/admin/stores/{store.id}/assignments", json={})
        assert response.status_code == 400


class TestSettingsKeys:
    def test_save_and_read_status(self, client, profiles):
        assert client.put("/settings/keys/gemini", json={"value": " gm-abcd1234 "}).status_code == 200

        assert client.get("/settings/keys/gemini").json() == {
            "success": True,
            "has_api_key": True,
            "last4": "1234",
        }
        keys = client.get("/settings/keys").json()["keys"]
        assert keys["openai"] == {"has_api_key": False, "last4": None}

    def test_empty_value_rejected(self, client, profiles):
        response = client.put("/settings/keys/meta", json={"value": "  "})
        assert response.status_code == 400
        assert response.json()["error"] == "Token cannot be empty"

    def test_unknown_kind(self, client, profiles):
        assert client.get("/settings/keys/anthropic").status_code == 404


class TestStrategy:
    def test_nothing_saved_yet(self, client, store):
        assert client.get(f"/stores/{store.id}/strategy").json() == {
            "success": True,
            "strategy": None,
        }

    def test_save_then_read(self, client, store):
        payload = {"input_data": {"goal": {"main_objective": "集客"}}, "output_data": {"swot": {}}}
        assert client.put(f"/stores/{store.id}/strategy", json=payload).status_code == 200

        strategy = client.get(f"/stores/{store.id}/strategy").json()["strategy"]
        assert strategy["input_data"] == payload["input_data"]
        assert strategy["store_id"] == store.id

    def test_viewer_cannot_save(self, client, store, act_as):
        act_as(VIEWER_ID)
        response = client.put(
            f"/stores/{store.id}/strategy", json={"input_data": {}, "output_data": {}}
        )
        assert response.status_code == 403


class TestBilling:
    def test_checkout_without_stripe(self, client, monkeypatch, store):
        monkeypatch.setattr(settings, "stripe_secret_key", None)
        response = client.post("/billing/checkout", json={"store_id": store.id, "price_id": "price_1"})
        assert response.status_code == 503

    def test_webhook_upgrades_store(self, client, monkeypatch, session, store):
        monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")
        seen = {}

        def construct_event(payload, sig, secret):
            seen["sig"] = sig
            return {
                "type": "checkout.session.completed",
                "data": {"object": {"client_reference_id": store.id, "customer": "cus_9"}},
            }

        monkeypatch.setattr(stripe.Webhook, "construct_event", construct_event)
        response = client.post(
            "/billing/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"}
        )

        assert response.json() == {"received": True}
        assert seen["sig"] == "t=1,v1=abc"
        session.refresh(store)
        assert store.plan_type == PlanType.PRO


class TestAIUsage:
    def test_failed_creative_does_not_use_allowance(self, client, monkeypatch, session, store):
        store.openai_api_key = None
        session.add(store)
        session.commit()
        monkeypatch.setattr(settings, "openai_api_key", None)

        response = client.post(f"/stores/{store.id}/ai/creative", json={"analysis": "CTRが低い"})

        assert response.status_code == 503
        session.refresh(store)
        assert store.total_usage_count == 0

    def test_successful_creative_uses_allowance(self, client, monkeypatch, session, store):
        async def fake_creative(analysis, store_url, reference_image, api_key):
            return {"title": "春", "body": "本文", "image_prompt": "p", "image_url": ""}

        monkeypatch.setattr(creative_service, "generate_creative", fake_creative)

        first = client.post(f"/stores/{store.id}/ai/creative", json={"analysis": "分析"})
        assert first.json()["creative"]["title"] == "春"
        session.refresh(store)
        assert store.total_usage_count == 1

        second = client.post(f"/stores/{store.id}/ai/creative", json={"analysis": "分析"})
        assert second.status_code == 429
        assert second.json()["success"] is False


class TestErrorShape:
    def test_clearing_store_name_is_rejected(self, client, session, store):
        response = client.patch(f"/stores/{store.id}", json={"name": None})
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Store name is required"}
        session.refresh(store)
        assert store.name == "渋谷店"

    def test_request_validation_uses_error_body(self, client, store):
        response = client.put(f"/stores/{store.id}/strategy", json={"input_data": {}})
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("output_data")

    def test_unexpected_errors_use_error_body(self, client, monkeypatch, store):
        def explode(session, user_id):
            raise RuntimeError("boom")

        monkeypatch.setattr(store_service, "list_stores", explode)
        quiet = TestClient(client.app, raise_server_exceptions=False)

        response = quiet.get("/stores")

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Internal Server Error"}
