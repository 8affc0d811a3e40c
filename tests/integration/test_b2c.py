"""Integration tests for POST /v1/mpesa/b2c"""

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from chama_pay.api.dependencies import get_settings
from chama_pay.domain.exceptions import StorageError
from chama_pay.infrastructure.database.models import Loan, Transaction


@pytest.fixture
def b2c_request(approved_loan: Loan) -> dict:
    return {
        "loan_id": str(approved_loan.id),
        "phone_number": "+254712345678",
        "amount": 5000,
        "user_id": "user_1",
    }


def test_b2c_disburses_approved_loan(client: TestClient, db: Session, approved_loan: Loan, b2c_request: dict):
    response = client.post("/v1/mpesa/b2c", json=b2c_request)

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Loan disbursed successfully. Check your M-Pesa for the funds.",
    }

    loan = db.get(Loan, approved_loan.id)
    assert loan.status == "disbursed"
    assert loan.disbursed_at is not None

    transaction = db.query(Transaction).one()
    assert transaction.type == "loan_disbursement"
    assert transaction.status == "completed"
    assert transaction.amount == Decimal("5000")
    assert transaction.chama_id == "chama_1"
    assert transaction.phone_number == "254712345678"
    assert transaction.description == "Loan disbursement"
    assert transaction.gateway_ref.startswith("SIM")


def test_b2c_second_request_is_rejected(client: TestClient, db: Session, approved_loan: Loan, b2c_request: dict):
    """The disbursement timestamp is set exactly once"""
    client.post("/v1/mpesa/b2c", json=b2c_request)
    first_stamp = db.get(Loan, approved_loan.id).disbursed_at

    response = client.post("/v1/mpesa/b2c", json=b2c_request)

    assert response.status_code == 409
    assert "not approved" in response.json()["error"]
    assert db.get(Loan, approved_loan.id).disbursed_at == first_stamp
    assert db.query(Transaction).count() == 1


def test_b2c_loan_not_approved(client: TestClient, db: Session, approved_loan: Loan, b2c_request: dict):
    loan = db.get(Loan, approved_loan.id)
    loan.status = "pending"
    db.commit()

    response = client.post("/v1/mpesa/b2c", json=b2c_request)

    assert response.status_code == 409
    assert db.get(Loan, approved_loan.id).status == "pending"
    assert db.query(Transaction).count() == 0


def test_b2c_unknown_loan(client: TestClient, db: Session, b2c_request: dict):
    b2c_request["loan_id"] = "00000000-0000-0000-0000-000000000000"

    response = client.post("/v1/mpesa/b2c", json=b2c_request)

    assert response.status_code == 409
    assert db.query(Transaction).count() == 0


def test_b2c_malformed_loan_id(client: TestClient, b2c_request: dict):
    b2c_request["loan_id"] = "loan-42"

    response = client.post("/v1/mpesa/b2c", json=b2c_request)

    assert response.status_code == 409


@pytest.mark.parametrize("missing", ["loan_id", "phone_number", "amount", "user_id"])
def test_b2c_missing_field(client: TestClient, db: Session, approved_loan: Loan, b2c_request: dict, missing: str):
    del b2c_request[missing]

    response = client.post("/v1/mpesa/b2c", json=b2c_request)

    assert response.status_code == 400
    assert missing in response.json()["error"]
    assert db.get(Loan, approved_loan.id).status == "approved"


def test_b2c_not_configured(
    client: TestClient, db: Session, approved_loan: Loan, unconfigured_settings, b2c_request: dict
):
    client.app.dependency_overrides[get_settings] = lambda: unconfigured_settings

    response = client.post("/v1/mpesa/b2c", json=b2c_request)

    assert response.status_code == 500
    assert response.json() == {"error": "M-Pesa integration not configured"}
    assert db.get(Loan, approved_loan.id).status == "approved"


def test_b2c_same_millisecond_payouts_each_recorded(
    client: TestClient, db: Session, approved_loan: Loan, b2c_request: dict
):
    """Payouts stamped in the same millisecond still get distinct references"""
    second_loan = Loan(user_id="user_2", chama_id="chama_1", amount=Decimal("3000"), status="approved")
    db.add(second_loan)
    db.commit()

    with patch("chama_pay.infrastructure.clients.mpesa.time.time", return_value=1760000000.123):
        first = client.post("/v1/mpesa/b2c", json=b2c_request)
        second = client.post(
            "/v1/mpesa/b2c",
            json={**b2c_request, "loan_id": str(second_loan.id), "amount": 3000, "user_id": "user_2"},
        )

    assert first.status_code == 200
    assert second.status_code == 200

    transactions = db.query(Transaction).all()
    assert len(transactions) == 2
    assert len({t.gateway_ref for t in transactions}) == 2
    assert all(t.gateway_ref.startswith("SIM1760000000123") for t in transactions)


@patch("chama_pay.infrastructure.clients.mpesa.MpesaClient.b2c_payout")
@patch("chama_pay.infrastructure.database.repositories.LoanRepository.mark_disbursed")
def test_b2c_loan_update_failure_aborts(
    mock_mark,
    mock_payout: AsyncMock,
    client: TestClient,
    db: Session,
    approved_loan: Loan,
    b2c_request: dict,
):
    """No payout and no ledger row when the loan cannot be moved to disbursed"""
    mock_mark.side_effect = StorageError("Failed to update loan status")

    response = client.post("/v1/mpesa/b2c", json=b2c_request)

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to update loan status"}
    mock_payout.assert_not_called()
    assert db.query(Transaction).count() == 0
    assert db.get(Loan, approved_loan.id).status == "approved"


def test_b2c_preflight(client: TestClient):
    response = client.options("/v1/mpesa/b2c")

    assert response.status_code == 200
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "*"
