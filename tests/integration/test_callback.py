"""Integration tests for POST /v1/mpesa/callback"""

from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from chama_pay.infrastructure.database.models import Contribution, Transaction

ACK = {"ResultCode": 0, "ResultDesc": "Accepted"}

SUCCESS_ITEMS = [
    {"Name": "Amount", "Value": 100.0},
    {"Name": "MpesaReceiptNumber", "Value": "NLJ7RT61SV"},
    {"Name": "TransactionDate", "Value": 20261019120000},
    {"Name": "PhoneNumber", "Value": 254712345678},
]


def test_callback_success_completes_and_records_contribution(
    client: TestClient, db: Session, pending_transaction: Transaction, callback_body
):
    response = client.post(
        "/v1/mpesa/callback",
        json=callback_body("ws_CO_191020261200001", items=SUCCESS_ITEMS),
    )

    assert response.status_code == 200
    assert response.json() == ACK

    transaction = db.get(Transaction, pending_transaction.id)
    assert transaction.status == "completed"
    assert transaction.gateway_ref == "NLJ7RT61SV"

    contribution = db.query(Contribution).one()
    assert contribution.user_id == "user_1"
    assert contribution.chama_id == "chama_1"
    assert contribution.amount == Decimal("100")
    assert contribution.payment_method == "mpesa"
    assert contribution.transaction_ref == "NLJ7RT61SV"


def test_callback_success_uses_settlement_amount(
    client: TestClient, db: Session, pending_transaction: Transaction, callback_body
):
    """The gateway's Amount item wins over the requested amount"""
    items = [{"Name": "Amount", "Value": 99}, {"Name": "MpesaReceiptNumber", "Value": "QWE123"}]

    client.post("/v1/mpesa/callback", json=callback_body("ws_CO_191020261200001", items=items))

    assert db.query(Contribution).one().amount == Decimal("99")


def test_callback_success_without_metadata_falls_back(
    client: TestClient, db: Session, pending_transaction: Transaction, callback_body
):
    """No receipt or amount: keep the CheckoutRequestID and the original amount"""
    response = client.post("/v1/mpesa/callback", json=callback_body("ws_CO_191020261200001"))

    assert response.json() == ACK
    transaction = db.get(Transaction, pending_transaction.id)
    assert transaction.status == "completed"
    assert transaction.gateway_ref == "ws_CO_191020261200001"

    contribution = db.query(Contribution).one()
    assert contribution.amount == Decimal("100.00")
    assert contribution.transaction_ref == "ws_CO_191020261200001"


def test_callback_failure_marks_failed(
    client: TestClient, db: Session, pending_transaction: Transaction, callback_body
):
    response = client.post(
        "/v1/mpesa/callback",
        json=callback_body("ws_CO_191020261200001", result_code=1032, result_desc="Request cancelled by user"),
    )

    assert response.json() == ACK
    transaction = db.get(Transaction, pending_transaction.id)
    assert transaction.status == "failed"
    assert transaction.description == "Chama contribution - Failed: Request cancelled by user"
    assert db.query(Contribution).count() == 0


def test_callback_unmatched_is_acknowledged(client: TestClient, db: Session, callback_body):
    response = client.post("/v1/mpesa/callback", json=callback_body("ws_CO_unknown", items=SUCCESS_ITEMS))

    assert response.status_code == 200
    assert response.json() == ACK
    assert db.query(Contribution).count() == 0


def test_callback_redelivery_creates_one_contribution(
    client: TestClient, db: Session, pending_transaction: Transaction, callback_body
):
    """A second delivery of the same result is a no-op"""
    body = callback_body("ws_CO_191020261200001")

    first = client.post("/v1/mpesa/callback", json=body)
    second = client.post("/v1/mpesa/callback", json=body)

    assert first.json() == ACK
    assert second.json() == ACK
    assert db.query(Contribution).count() == 1
    assert db.get(Transaction, pending_transaction.id).status == "completed"


def test_callback_failure_after_completion_is_ignored(
    client: TestClient, db: Session, pending_transaction: Transaction, callback_body
):
    """Terminal states never change again"""
    client.post("/v1/mpesa/callback", json=callback_body("ws_CO_191020261200001"))
    client.post(
        "/v1/mpesa/callback",
        json=callback_body("ws_CO_191020261200001", result_code=1, result_desc="Insufficient funds"),
    )

    transaction = db.get(Transaction, pending_transaction.id)
    assert transaction.status == "completed"
    assert "Failed" not in transaction.description
    assert db.query(Contribution).count() == 1


def test_callback_malformed_json_is_acknowledged(client: TestClient, db: Session):
    response = client.post(
        "/v1/mpesa/callback",
        content=b"not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json() == ACK


def test_callback_missing_envelope_is_acknowledged(client: TestClient, db: Session):
    response = client.post("/v1/mpesa/callback", json={"unexpected": True})

    assert response.status_code == 200
    assert response.json() == ACK
    assert db.query(Contribution).count() == 0


def test_callback_preflight(client: TestClient):
    response = client.options("/v1/mpesa/callback")

    assert response.status_code == 200
    assert response.content == b""
