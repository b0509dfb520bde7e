"""Tests for the plan catalog, trial and account subscribe endpoints."""

from fastapi.testclient import TestClient

from eventplan.main import app
from tests.conftest import auth_headers, make_event

client = TestClient(app)


class TestPlans:
    def test_sandbox_prices(self):
        response = client.get("/subscriptions/plans")

        assert response.status_code == 200
        plans = {p["code"]: p for p in response.json()}
        assert set(plans) == {"trial", "starter", "pro"}
        assert plans["starter"]["price"] == 150
        assert plans["starter"]["currency"] == "EUR"
        assert plans["trial"]["requires_payment"] is False
        assert plans["pro"]["limits"]["guests.max_per_event"] == -1


class TestTrial:
    def test_trial_available_once(self, owner):
        before = client.get("/subscriptions/trial", headers=auth_headers(owner)).json()
        assert before["available"] is True
        assert before["plan"]["duration_days"] == 14

        response = client.post(
            "/subscriptions/subscribe", json={"plan_id": "trial"}, headers=auth_headers(owner)
        )
        assert response.status_code == 200
        assert response.json()["subscription"]["plan_type"] == "trial"
        assert response.json()["subscription"]["event_id"] is None

        after = client.get("/subscriptions/trial", headers=auth_headers(owner)).json()
        assert after == {"available": False, "plan": None}

        again = client.post(
            "/subscriptions/subscribe", json={"plan_id": "trial"}, headers=auth_headers(owner)
        )
        assert again.status_code == 400

    def test_trial_applies_to_owned_events(self, db_session, owner):
        event = make_event(db_session, owner)
        client.post(
            "/subscriptions/subscribe", json={"plan_id": "trial"}, headers=auth_headers(owner)
        )

        response = client.get(f"/events/{event.id}/entitlements", headers=auth_headers(owner))

        assert response.json()["is_trial"] is True


class TestSubscribe:
    def test_paid_plan_requires_payment(self, owner):
        response = client.post(
            "/subscriptions/subscribe", json={"plan_id": "pro"}, headers=auth_headers(owner)
        )

        assert response.json() == {
            "requires_payment": True,
            "subscription": None,
            "amount": 300,
            "currency": "EUR",
        }

    def test_unknown_plan(self, owner):
        response = client.post(
            "/subscriptions/subscribe", json={"plan_id": "gold"}, headers=auth_headers(owner)
        )
        assert response.status_code == 400
