"""Integration tests for API endpoints"""

import pytest
from decimal import Decimal
from unittest.mock import patch
from fastapi.testclient import TestClient
from debt_ledger.domain.exceptions import InvariantViolationError

pytestmark = pytest.mark.integration


@pytest.fixture
def customer_id(client: TestClient) -> int:
    response = client.post("/v1/customers", json={"name": "Amina Otieno", "phone": "+254700000001"})
    assert response.status_code == 201
    return response.json()["id"]


def add_debt(client: TestClient, customer_id: int, amount: str, description: str = "Debt") -> dict:
    response = client.post(
        "/v1/debts",
        json={"customer_id": customer_id, "amount": amount, "description": description},
    )
    assert response.status_code == 201
    return response.json()


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    client.get("/health")
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "http_request_duration_seconds" in response.text


def test_request_id_header_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_create_customer(client: TestClient):
    response = client.post(
        "/v1/customers",
        json={"name": "Brian Kamau", "phone": "+254700000002", "email": "brian@example.com"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Brian Kamau"
    assert Decimal(data["credit_balance"]) == 0


def test_create_customer_validation(client: TestClient):
    response = client.post("/v1/customers", json={"name": "", "phone": "+254700000002"})
    assert response.status_code == 422


def test_payment_endpoint_fifo(client: TestClient, customer_id: int):
    """Test POST /v1/payments allocates across debts oldest first"""
    d1 = add_debt(client, customer_id, "50", "Stock")["debt"]
    d2 = add_debt(client, customer_id, "60", "Rent")["debt"]

    response = client.post(
        "/v1/payments",
        json={"customer_id": customer_id, "amount": "100", "method": "MOBILE_MONEY", "reference": "MP123"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["payment"]["method"] == "MOBILE_MONEY"
    assert data["payment"]["reference"] == "MP123"
    summary = data["summary"]
    assert Decimal(summary["applied_to_debt"]) == Decimal("100")
    assert Decimal(summary["remaining_total_debt"]) == Decimal("10")
    affected = {d["debt_id"]: d for d in summary["debts_affected"]}
    assert affected[d1["id"]]["fully_paid"] is True
    assert Decimal(affected[d2["id"]]["remaining_amount"]) == Decimal("10")

    detail = client.get(f"/v1/payments/{data['payment']['id']}")
    assert detail.status_code == 200
    assert [a["debt_id"] for a in detail.json()["allocations"]] == [d1["id"], d2["id"]]


def test_payment_endpoint_overpayment(client: TestClient, customer_id: int):
    add_debt(client, customer_id, "40")

    response = client.post("/v1/payments", json={"customer_id": customer_id, "amount": "60"})

    assert response.status_code == 201
    assert Decimal(response.json()["summary"]["new_credit_balance"]) == Decimal("20")

    balance = client.get(f"/v1/customers/{customer_id}/balance").json()
    assert balance["status"] == "CREDIT"
    assert Decimal(balance["credit_balance"]) == Decimal("20")


def test_payment_endpoint_unknown_customer(client: TestClient):
    response = client.post("/v1/payments", json={"customer_id": 999, "amount": "10"})
    assert response.status_code == 404


def test_payment_endpoint_negative_amount(client: TestClient, customer_id: int):
    response = client.post("/v1/payments", json={"customer_id": customer_id, "amount": "-1"})
    assert response.status_code == 422


def test_payment_endpoint_invariant_violation_is_500(client: TestClient, customer_id: int):
    with patch(
        "debt_ledger.services.payments.set_credit_balance",
        side_effect=InvariantViolationError("mismatch"),
    ):
        response = client.post("/v1/payments", json={"customer_id": customer_id, "amount": "10"})

    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error"


def test_get_payment_not_found(client: TestClient):
    assert client.get("/v1/payments/777").status_code == 404


def test_debt_endpoint_applies_credit(client: TestClient, customer_id: int):
    client.post(f"/v1/customers/{customer_id}/credit-adjustments", json={"amount": "20"})

    data = add_debt(client, customer_id, "30")

    assert Decimal(data["credit_applied"]) == Decimal("20")
    assert Decimal(data["final_amount"]) == Decimal("10")
    assert Decimal(data["debt"]["original_amount"]) == Decimal("30")


def test_debt_endpoint_schedules_notification(client: TestClient, customer_id: int, notifier):
    """Test crossing the alert threshold hands an alert to the notifier"""
    add_debt(client, customer_id, "250")
    assert len(notifier.alerts) == 1
    assert notifier.alerts[0].customer_id == customer_id


def test_debt_endpoint_validation(client: TestClient, customer_id: int):
    response = client.post("/v1/debts", json={"customer_id": customer_id, "amount": "0"})
    assert response.status_code == 422


def test_debt_endpoint_unknown_customer(client: TestClient):
    response = client.post("/v1/debts", json={"customer_id": 404, "amount": "10"})
    assert response.status_code == 404


def test_debt_history_endpoint(client: TestClient, customer_id: int):
    debt = add_debt(client, customer_id, "100")["debt"]
    client.post("/v1/payments", json={"customer_id": customer_id, "amount": "30"})

    response = client.get(f"/v1/debts/{debt['id']}/history")

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["percentage_paid"]) == Decimal("30")
    assert len(data["payments"]) == 1
    assert client.get("/v1/debts/9999/history").status_code == 404


def test_outstanding_debts_and_summary_endpoints(client: TestClient, customer_id: int):
    add_debt(client, customer_id, "10")
    add_debt(client, customer_id, "20")
    client.post("/v1/payments", json={"customer_id": customer_id, "amount": "10"})

    debts = client.get(f"/v1/customers/{customer_id}/debts").json()
    assert len(debts["debts"]) == 1
    assert Decimal(debts["total_outstanding"]) == Decimal("20")

    summary = client.get(f"/v1/customers/{customer_id}/debt-summary").json()
    assert summary["paid_debts"] == 1
    assert summary["unpaid_debts"] == 1

    payments = client.get(f"/v1/customers/{customer_id}/payments").json()
    assert Decimal(payments["total_received"]) == Decimal("10")


def test_apply_credit_endpoint(client: TestClient, customer_id: int):
    add_debt(client, customer_id, "50")
    client.post(f"/v1/customers/{customer_id}/credit-adjustments", json={"amount": "30"})

    response = client.post(f"/v1/customers/{customer_id}/apply-credit", json={"credit_amount": "10"})

    assert response.status_code == 200
    summary = response.json()["summary"]
    assert Decimal(summary["credit_consumed"]) == Decimal("10")
    assert Decimal(summary["new_credit_balance"]) == Decimal("20")


def test_apply_credit_endpoint_without_body(client: TestClient, customer_id: int):
    add_debt(client, customer_id, "50")
    client.post(f"/v1/customers/{customer_id}/credit-adjustments", json={"amount": "30"})

    response = client.post(f"/v1/customers/{customer_id}/apply-credit")

    assert response.status_code == 200
    assert Decimal(response.json()["summary"]["remaining_total_debt"]) == Decimal("20")


def test_apply_credit_endpoint_errors(client: TestClient, customer_id: int):
    """Test no credit / no debt map to 400, unknown customer to 404"""
    add_debt(client, customer_id, "50")
    response = client.post(f"/v1/customers/{customer_id}/apply-credit")
    assert response.status_code == 400

    response = client.post("/v1/customers/5555/apply-credit")
    assert response.status_code == 404


def test_credit_adjustment_endpoint(client: TestClient, customer_id: int):
    response = client.post(
        f"/v1/customers/{customer_id}/credit-adjustments",
        json={"amount": "15", "description": "Refund"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["transaction"]["type"] == "MANUAL_ADJUSTMENT"
    assert Decimal(data["new_credit_balance"]) == Decimal("15")

    response = client.post(f"/v1/customers/{customer_id}/credit-adjustments", json={"amount": "-50"})
    assert response.status_code == 400


def test_credit_reconciliation_endpoint(client: TestClient, customer_id: int):
    add_debt(client, customer_id, "10")
    client.post("/v1/payments", json={"customer_id": customer_id, "amount": "25"})

    data = client.get(f"/v1/customers/{customer_id}/credit-reconciliation").json()

    assert data["balanced"] is True
    assert Decimal(data["credit_balance"]) == Decimal("15")


def test_analytics_endpoints(client: TestClient, customer_id: int):
    add_debt(client, customer_id, "10")
    add_debt(client, customer_id, "10")
    client.post("/v1/payments", json={"customer_id": customer_id, "amount": "15", "method": "CASH"})

    payments = client.get("/v1/payments/analytics", params={"customer_id": customer_id}).json()
    assert payments["total_payments"] == 1
    assert payments["by_method"][0]["method"] == "CASH"
    assert payments["by_debts_affected"] == {"2": 1}

    debts = client.get("/v1/debts/analytics", params={"customer_id": customer_id}).json()
    assert debts["total_debts"] == 2
    assert debts["paid_debts"] == 1

    assert client.get("/v1/debts/analytics", params={"customer_id": 999}).status_code == 404


def test_create_customer_unexpected_error_is_500(client: TestClient):
    with patch(
        "debt_ledger.services.customers.CustomerRepository.create_customer",
        side_effect=RuntimeError("database unavailable"),
    ):
        response = client.post("/v1/customers", json={"name": "Brian Kamau", "phone": "+254700000002"})

    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error"


def test_credit_adjustment_invariant_violation_is_500(client: TestClient, customer_id: int):
    with patch(
        "debt_ledger.services.customers.assert_credit_ledger_balanced",
        side_effect=InvariantViolationError("mismatch"),
    ):
        response = client.post(f"/v1/customers/{customer_id}/credit-adjustments", json={"amount": "5"})

    assert response.status_code == 500
    balance = client.get(f"/v1/customers/{customer_id}/balance").json()
    assert Decimal(balance["credit_balance"]) == 0


def test_list_customers_endpoint(client: TestClient, customer_id: int):
    add_debt(client, customer_id, "40")

    response = client.get("/v1/customers")

    assert response.status_code == 200
    (row,) = response.json()
    assert row["id"] == customer_id
    assert Decimal(row["total_debt"]) == Decimal("40")
    assert Decimal(row["net_balance"]) == Decimal("-40")
    assert row["status"] == "DEBT"


def test_search_customers_endpoint(client: TestClient, customer_id: int):
    client.post("/v1/customers", json={"name": "Brian Kamau", "phone": "+254711111111"})

    response = client.get("/v1/customers/search", params={"q": "amina"})

    assert response.status_code == 200
    assert [c["id"] for c in response.json()] == [customer_id]
    assert client.get("/v1/customers/search").status_code == 422


def test_customers_with_unpaid_debts_endpoint(client: TestClient, customer_id: int):
    client.post("/v1/customers", json={"name": "Brian Kamau", "phone": "+254711111111"})
    add_debt(client, customer_id, "15")

    response = client.get("/v1/customers/with-unpaid-debts")

    assert response.status_code == 200
    (entry,) = response.json()
    assert entry["customer"]["id"] == customer_id
    assert Decimal(entry["total_unpaid"]) == Decimal("15")
    assert len(entry["debts"]) == 1


def test_customer_detail_endpoint(client: TestClient, customer_id: int):
    add_debt(client, customer_id, "50")
    client.post("/v1/payments", json={"customer_id": customer_id, "amount": "20"})

    response = client.get(f"/v1/customers/{customer_id}")

    assert response.status_code == 200
    data = response.json()
    assert data["customer"]["name"] == "Amina Otieno"
    assert data["balance"]["status"] == "DEBT"
    assert Decimal(data["balance"]["total_debt"]) == Decimal("30")
    assert len(data["unpaid_debts"]) == 1
    assert len(data["recent_payments"]) == 1
    assert client.get("/v1/customers/9999").status_code == 404


def test_customer_debts_include_paid_endpoint(client: TestClient, customer_id: int):
    add_debt(client, customer_id, "10")
    add_debt(client, customer_id, "20")
    client.post("/v1/payments", json={"customer_id": customer_id, "amount": "10"})

    data = client.get(f"/v1/customers/{customer_id}/debts", params={"include_paid": True}).json()

    assert [d["is_paid"] for d in data["debts"]] == [True, False]
    assert Decimal(data["total_outstanding"]) == Decimal("20")


def test_credit_transactions_endpoint(client: TestClient, customer_id: int):
    add_debt(client, customer_id, "10")
    client.post("/v1/payments", json={"customer_id": customer_id, "amount": "25"})

    response = client.get(f"/v1/customers/{customer_id}/credit-transactions")

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["credit_balance"]) == Decimal("15")
    assert [t["type"] for t in data["transactions"]] == ["OVERPAYMENT_ADDED"]
    assert sum(Decimal(t["amount"]) for t in data["transactions"]) == Decimal(data["credit_balance"])
    assert client.get("/v1/customers/9999/credit-transactions").status_code == 404
