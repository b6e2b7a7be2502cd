"""Integration tests for API endpoints"""

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def bank_id(client: TestClient) -> str:
    """Cash box holding 500.000"""
    response = client.post("/v1/bank-accounts", json={"name": "Caja", "balance": 500_000, "is_cash": True})
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def borrower_id(client: TestClient, bank_id: str) -> str:
    """Client lent 400.000 from the cash box on 2024-03-01"""
    response = client.post(
        "/v1/clients",
        json={
            "name": "Ana Rojas",
            "cedula": "1010",
            "credit_start_date": "2024-03-01",
            "interest_rate": 10,
            "initial_amount": 400_000,
            "initial_bank_account_id": bank_id,
        },
    )
    assert response.status_code == 201
    return response.json()["id"]


def _balance(client: TestClient, bank_id: str) -> int:
    accounts = {a["id"]: a for a in client.get("/v1/bank-accounts").json()}
    return accounts[bank_id]["balance"]


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient, borrower_id: str):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "loan_ledger_writes_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_projection_endpoint(client: TestClient):
    response = client.post("/v1/projection", json={"principal": 1_000_000, "monthly_rate": 10})

    assert response.status_code == 200
    data = response.json()
    assert data["total_debt"] == 1_000_000
    assert data["projection"]["quota"] == 1_100_000
    assert data["projection"]["total_installments"] == 1


def test_projection_refinance_and_empty(client: TestClient):
    refinance = client.post(
        "/v1/projection", json={"principal": 600_000, "current_debt": 400_000, "monthly_rate": 10}
    ).json()
    assert refinance["total_debt"] == 1_000_000
    assert refinance["projection"]["quota"] == 1_100_000

    empty = client.post("/v1/projection", json={"principal": 0, "monthly_rate": 10}).json()
    assert empty["projection"] is None


def test_split_endpoint(client: TestClient):
    response = client.post(
        "/v1/projection/split", json={"balance": 800_000, "monthly_rate": 10, "frequency": "BIWEEKLY", "quota": 150_000}
    )
    assert response.json() == {"capital": 110_000, "interest": 40_000, "total": 150_000}


def test_create_client_with_disbursement(client: TestClient, bank_id: str, borrower_id: str):
    """Origination writes the first ledger entry and moves treasury cash"""
    data = client.get(f"/v1/clients/{borrower_id}").json()

    assert data["summary"]["current_balance"] == 400_000
    assert data["installment_amount"] == 440_000
    assert data["next_payment_date"] == "2024-04-01"
    assert data["is_late"] is False
    assert data["redirection"]["state"] == "NONE"
    assert _balance(client, bank_id) == 100_000

    ledger = client.get(f"/v1/clients/{borrower_id}/transactions").json()
    assert [t["type"] for t in ledger["transactions"]] == ["DISBURSEMENT"]


def test_disbursement_above_treasury_balance_rejected(client: TestClient, bank_id: str):
    """Nothing is written when the cash box cannot cover the loan"""
    response = client.post(
        "/v1/clients",
        json={"name": "Sin fondos", "cedula": "3030", "initial_amount": 600_000, "initial_bank_account_id": bank_id},
    )

    assert response.status_code == 409
    assert client.get("/v1/clients").json() == []
    assert _balance(client, bank_id) == 500_000


def test_unknown_client_is_404(client: TestClient):
    assert client.get("/v1/clients/missing").status_code == 404
    assert client.get("/v1/clients/missing/transactions").status_code == 404


def test_payment_updates_ledger_and_treasury(client: TestClient, bank_id: str, borrower_id: str):
    response = client.post(
        f"/v1/clients/{borrower_id}/transactions",
        json={
            "type": "PAYMENT_CAPITAL",
            "amount": 100_000,
            "interest_paid": 40_000,
            "bank_account_id": bank_id,
            "date": "2024-03-10",
        },
    )

    assert response.status_code == 201
    assert response.json()["balance_after"] == 300_000
    assert _balance(client, bank_id) == 240_000

    data = client.get(f"/v1/clients/{borrower_id}").json()
    assert data["summary"]["capital_returned"] == 100_000
    assert data["summary"]["interest_earned"] == 40_000
    assert data["next_payment_date"] == "2024-05-01"


def test_overpayment_rejected(client: TestClient, borrower_id: str):
    response = client.post(
        f"/v1/clients/{borrower_id}/transactions",
        json={"type": "PAYMENT_CAPITAL", "amount": 400_001, "date": "2024-03-10"},
    )

    assert response.status_code == 409
    ledger = client.get(f"/v1/clients/{borrower_id}/transactions").json()
    assert len(ledger["transactions"]) == 1


def test_redirection_legs_not_accepted_as_plain_transactions(client: TestClient, borrower_id: str):
    response = client.post(
        f"/v1/clients/{borrower_id}/transactions",
        json={"type": "REDIRECT_OUT", "amount": 100_000},
    )
    assert response.status_code == 422


def test_settlement_closes_client(client: TestClient, borrower_id: str):
    response = client.post(
        f"/v1/clients/{borrower_id}/transactions",
        json={"type": "SETTLEMENT", "interest_paid": 20_000, "date": "2024-03-12"},
    )

    assert response.status_code == 201
    assert response.json()["amount"] == 400_000
    data = client.get(f"/v1/clients/{borrower_id}").json()
    assert data["status"] == "INACTIVE"
    assert data["summary"]["current_balance"] == 0
    assert data["next_payment_date"] is None


def test_edit_rewrites_balances_and_treasury(client: TestClient, bank_id: str, borrower_id: str):
    payment = client.post(
        f"/v1/clients/{borrower_id}/transactions",
        json={"type": "PAYMENT_CAPITAL", "amount": 100_000, "interest_paid": 40_000, "bank_account_id": bank_id, "date": "2024-03-10"},
    ).json()

    response = client.put(f"/v1/transactions/{payment['id']}", json={"amount": 150_000})

    assert response.status_code == 200
    balances = [t["balance_after"] for t in response.json()["transactions"]]
    assert balances == [400_000, 250_000]
    assert _balance(client, bank_id) == 290_000


def test_delete_rewalks_chain(client: TestClient, bank_id: str, borrower_id: str):
    ledger = client.get(f"/v1/clients/{borrower_id}/transactions").json()
    disbursement_id = ledger["transactions"][0]["id"]
    payment = client.post(
        f"/v1/clients/{borrower_id}/transactions",
        json={"type": "PAYMENT_CAPITAL", "amount": 100_000, "bank_account_id": bank_id, "date": "2024-03-10"},
    ).json()

    # The payment would be left reducing nothing
    assert client.delete(f"/v1/transactions/{disbursement_id}").status_code == 409

    response = client.delete(f"/v1/transactions/{payment['id']}")
    assert response.status_code == 200
    assert [t["balance_after"] for t in response.json()["transactions"]] == [400_000]
    assert _balance(client, bank_id) == 100_000


def test_redirection_waits_then_resolves(client: TestClient, borrower_id: str):
    recipient = client.post(
        "/v1/clients",
        json={
            "name": "Luis Pardo",
            "cedula": "2020",
            "credit_start_date": "2024-03-10",
            "initial_amount": 300_000,
            "is_redirection": True,
            "redirection_wait_days": 3,
        },
    ).json()

    assert recipient["summary"]["current_balance"] == 300_000
    assert recipient["redirection"]["state"] == "OVERDUE"
    assert recipient["redirection"]["remaining_wait_days"] == -2

    waiting = client.get("/v1/clients", params={"waiting": "true"}).json()
    assert [c["id"] for c in waiting] == [recipient["id"]]

    response = client.post(
        "/v1/redirections/fund",
        json={"payer_id": borrower_id, "recipient_id": recipient["id"], "amount": 300_000, "date": "2024-03-14"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["state"] == "RESOLVED"
    assert data["pending_redirection_balance"] == 0
    assert data["outgoing"]["balance_after"] == 100_000
    assert client.get(f"/v1/clients/{recipient['id']}").json()["redirection"]["state"] == "NONE"
    assert client.get("/v1/redirections/orphans").json()["orphans"] == []

    leg_id = data["outgoing"]["id"]
    assert client.delete(f"/v1/transactions/{leg_id}").status_code == 409


def test_direct_redirection(client: TestClient, borrower_id: str):
    recipient = client.post("/v1/clients", json={"name": "Luis Pardo", "cedula": "2020"}).json()

    response = client.post(
        "/v1/redirections/direct",
        json={"payer_id": borrower_id, "recipient_id": recipient["id"], "amount": 150_000, "date": "2024-03-14"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["outgoing"]["redirection_id"] == data["incoming"]["redirection_id"]
    assert client.get(f"/v1/clients/{recipient['id']}").json()["summary"]["current_balance"] == 150_000
    assert client.get(f"/v1/clients/{borrower_id}").json()["summary"]["current_balance"] == 250_000


def test_direct_redirection_rejected_writes_nothing(client: TestClient, borrower_id: str):
    recipient = client.post("/v1/clients", json={"name": "Luis Pardo", "cedula": "2020"}).json()

    response = client.post(
        "/v1/redirections/direct",
        json={"payer_id": borrower_id, "recipient_id": recipient["id"], "amount": 500_000, "date": "2024-03-14"},
    )

    assert response.status_code == 409
    assert client.get(f"/v1/clients/{recipient['id']}/transactions").json()["transactions"] == []


def test_treasury_movements(client: TestClient, bank_id: str):
    rejected = client.post(
        f"/v1/bank-accounts/{bank_id}/movements", json={"type": "WITHDRAWAL", "amount": 600_000}
    )
    assert rejected.status_code == 409

    response = client.post(f"/v1/bank-accounts/{bank_id}/movements", json={"type": "DEPOSIT", "amount": 250_000})
    assert response.status_code == 201
    assert response.json()["balance"] == 750_000
    assert response.json()["date"] == "2024-03-15"


def test_audit_log_records_writes(client: TestClient, borrower_id: str):
    entries = client.get("/v1/audit-log").json()["entries"]

    assert {e["entity"] for e in entries} >= {"BANK", "CLIENT"}


def test_manual_disbursement_resolves_waiting_redirection(client: TestClient, bank_id: str):
    """Money handed over from treasury ends the wait for redirected funds"""
    recipient = client.post(
        "/v1/clients",
        json={
            "name": "Luis Pardo",
            "cedula": "2020",
            "credit_start_date": "2024-03-10",
            "initial_amount": 300_000,
            "is_redirection": True,
            "redirection_wait_days": 3,
        },
    ).json()

    response = client.post(
        f"/v1/clients/{recipient['id']}/transactions",
        json={"type": "DISBURSEMENT", "amount": 300_000, "bank_account_id": bank_id, "date": "2024-03-12"},
    )

    assert response.status_code == 201
    assert response.json()["type"] == "REFINANCE"
    data = client.get(f"/v1/clients/{recipient['id']}").json()
    assert data["pending_redirection_balance"] == 0
    assert data["redirection"]["state"] == "NONE"
    assert data["summary"]["current_balance"] == 600_000
    assert _balance(client, bank_id) == 200_000
    assert client.get("/v1/clients", params={"waiting": "true"}).json() == []


def test_edit_collection_notes_after_cash_was_withdrawn(client: TestClient, bank_id: str, borrower_id: str):
    payment = client.post(
        f"/v1/clients/{borrower_id}/transactions",
        json={"type": "PAYMENT_CAPITAL", "amount": 300_000, "interest_paid": 30_000, "bank_account_id": bank_id, "date": "2024-03-10"},
    ).json()
    withdrawal = client.post(f"/v1/bank-accounts/{bank_id}/movements", json={"type": "WITHDRAWAL", "amount": 330_000})
    assert withdrawal.json()["balance"] == 100_000

    response = client.put(f"/v1/transactions/{payment['id']}", json={"notes": "Recibo 12"})

    assert response.status_code == 200
    assert response.json()["transactions"][-1]["notes"] == "Recibo 12"
    assert _balance(client, bank_id) == 100_000


def test_editing_disbursement_reprojects_installment(client: TestClient, bank_id: str, borrower_id: str):
    disbursement_id = client.get(f"/v1/clients/{borrower_id}/transactions").json()["transactions"][0]["id"]

    response = client.put(f"/v1/transactions/{disbursement_id}", json={"amount": 300_000})

    assert response.status_code == 200
    data = client.get(f"/v1/clients/{borrower_id}").json()
    assert data["summary"]["current_balance"] == 300_000
    assert data["installment_amount"] == 330_000
    assert data["installments_count"] == 1
    assert _balance(client, bank_id) == 200_000


def test_projection_without_new_money_on_open_debt(client: TestClient):
    data = client.post(
        "/v1/projection", json={"principal": 0, "current_debt": 400_000, "monthly_rate": 10}
    ).json()

    assert data["projection"] is None
    assert data["total_debt"] == 400_000
