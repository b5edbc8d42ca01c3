"""
Tests for API Endpoints

Runs the HTTP layer against the in-memory repository.
"""

import pytest
from fastapi.testclient import TestClient

from autosave.app import create_app
from autosave.config import Settings
from autosave.services.auto_save_service import AutoSaveService
from autosave.services.destination_router import DestinationRouter
from autosave.tests.fakes import InMemoryRepository, RecordingGateway

API_KEY = "test-key"


@pytest.fixture
def client():
    """Get FastAPI test client wired to a fresh in-memory service."""
    repository = InMemoryRepository()
    settings = Settings(api_key=API_KEY, auto_process_round_ups=False)
    router = DestinationRouter(repository, vault_gateway=RecordingGateway(), max_attempts=1)
    service = AutoSaveService(repository, router, settings=settings, clock=repository.clock)
    with TestClient(create_app(settings=settings, service=service)) as test_client:
        test_client.headers.update({"X-API-Key": API_KEY, "X-User-Id": "user_1"})
        yield test_client


def create_rule(client, **overrides):
    payload = {
        "name": "Round up to 5",
        "trigger_type": "round_up",
        "trigger_settings": {"round_up_amount": "5"},
        "destination_type": "investment_vault",
        "destination_id": "vault_1",
    }
    payload.update(overrides)
    response = client.post("/api/v1/auto-save-rules", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestSecurity:

    def test_health_check_needs_no_key(self, client):
        response = client.get("/", headers={"X-API-Key": ""})
        assert response.status_code == 200

    def test_wrong_key_rejected(self, client):
        response = client.get("/api/v1/auto-save-rules", headers={"X-API-Key": "nope"})
        assert response.status_code == 401

    def test_missing_user_header_rejected(self, client):
        del client.headers["X-User-Id"]
        response = client.get("/api/v1/auto-save-rules")
        assert response.status_code == 422


class TestRulesEndpoints:

    def test_create_and_list(self, client):
        rule = create_rule(client)

        response = client.get("/api/v1/auto-save-rules")
        assert response.status_code == 200
        [listed] = response.json()
        assert listed["id"] == rule["id"]
        assert listed["trigger_settings"] == {"round_up_amount": "5"}

    def test_invalid_percentage_rejected(self, client):
        response = client.post("/api/v1/auto-save-rules", json={
            "name": "Too much",
            "trigger_type": "percentage",
            "trigger_settings": {"percentage": "250"},
            "destination_type": "savings_account",
            "destination_id": "acc_1",
        })
        assert response.status_code == 422

    def test_fixed_amount_without_amount_rejected(self, client):
        response = client.post("/api/v1/auto-save-rules", json={
            "name": "Fixed",
            "trigger_type": "fixed_amount",
            "destination_type": "savings_account",
            "destination_id": "acc_1",
        })
        assert response.status_code == 422
        assert "fixed_amount" in response.json()["detail"]

    def test_unknown_savings_account_destination_404(self, client):
        response = client.post("/api/v1/auto-save-rules", json={
            "name": "Into nowhere",
            "trigger_type": "round_up",
            "destination_type": "savings_account",
            "destination_id": "acc_missing",
        })
        assert response.status_code == 404

    def test_patch_and_delete(self, client):
        rule = create_rule(client)

        response = client.patch(f"/api/v1/auto-save-rules/{rule['id']}", json={"priority": 3})
        assert response.status_code == 200
        assert response.json()["priority"] == 3

        response = client.delete(f"/api/v1/auto-save-rules/{rule['id']}")
        assert response.status_code == 204
        assert client.get("/api/v1/auto-save-rules").json() == []

    def test_unknown_rule_404(self, client):
        response = client.patch("/api/v1/auto-save-rules/missing", json={"priority": 3})
        assert response.status_code == 404


class TestTransactionFlow:

    def test_completed_transaction_creates_pending_round_up(self, client):
        create_rule(client)

        response = client.post("/api/v1/transactions/completed", json={
            "transaction_id": "txn_1",
            "amount": "23",
            "type": "payment",
            "metadata": {"merchant_name": "Shoprite"},
        })

        assert response.status_code == 202
        body = response.json()
        assert body["triggered_count"] == 1
        assert body["total_round_up"] == "2"
        [round_up] = body["round_ups"]
        assert round_up["status"] == "pending"
        assert round_up["metadata"]["merchant_name"] == "Shoprite"

    def test_process_round_up_then_list(self, client):
        create_rule(client)
        body = client.post("/api/v1/transactions/completed", json={
            "transaction_id": "txn_1", "amount": "23", "type": "payment",
        }).json()
        round_up_id = body["round_ups"][0]["id"]

        response = client.post(f"/api/v1/round-ups/{round_up_id}/process")
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

        completed = client.get("/api/v1/round-ups", params={"status": "completed"}).json()
        assert [r["id"] for r in completed] == [round_up_id]

    def test_non_positive_amount_rejected(self, client):
        response = client.post("/api/v1/transactions/completed", json={
            "transaction_id": "txn_1", "amount": "0", "type": "payment",
        })
        assert response.status_code == 422


class TestGoalsAndAnalytics:

    def test_goal_contributions(self, client):
        goal = client.post("/api/v1/goals", json={
            "name": "Emergency fund",
            "target_amount": "100",
            "target_date": "2026-01-01T00:00:00",
            "priority": "high",
        }).json()

        response = client.post(f"/api/v1/goals/{goal['id']}/contributions", json={"amount": "40"})
        assert response.status_code == 201

        [refreshed] = client.get("/api/v1/goals").json()
        assert refreshed["current_amount"] == "40"
        assert refreshed["progress"] == "40.00"

        contributions = client.get(f"/api/v1/goals/{goal['id']}/contributions").json()
        assert [c["source"] for c in contributions] == ["manual"]

    def test_link_rule_to_goal(self, client):
        rule = create_rule(client)
        goal = client.post("/api/v1/goals", json={
            "name": "Car", "target_amount": "500", "target_date": "2026-01-01T00:00:00",
        }).json()

        response = client.post(f"/api/v1/goals/{goal['id']}/rules/{rule['id']}")
        assert response.status_code == 200
        assert response.json()["auto_save_rules"] == [rule["id"]]

    def test_savings_account_roundtrip(self, client):
        response = client.post("/api/v1/savings-accounts", json={"name": "Main", "currency": "USD"})
        assert response.status_code == 201
        [account] = client.get("/api/v1/savings-accounts").json()
        assert account["currency"] == "USD"
        assert account["settings"]["allow_withdrawals"] is True

    def test_analytics_for_new_user(self, client):
        response = client.get("/api/v1/analytics", params={"period": "week"})
        assert response.status_code == 200
        body = response.json()
        assert body["period"] == "week"
        assert body["total_saved"] == "0"
        assert [i["id"] for i in body["insights"]] == ["no_goals"]
