"""Pytest fixtures for testing"""

import pytest
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from chama_pay.api.main import create_app
from chama_pay.api.dependencies import get_settings
from chama_pay.config import Settings
from chama_pay.domain.models import LoanStatus, TransactionKind, TransactionStatus
from chama_pay.infrastructure.database.models import Base, Loan, Transaction
from chama_pay.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_settings() -> Settings:
    """Sandbox credentials, independent of the environment and any .env file"""
    return Settings(
        _env_file=None,
        mpesa_base_url="https://sandbox.safaricom.co.ke",
        mpesa_consumer_key="test-key",
        mpesa_consumer_secret="test-secret",
        mpesa_shortcode="174379",
        mpesa_passkey="test-passkey",
        public_base_url="https://pay.example.com",
    )


@pytest.fixture
def unconfigured_settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def client(db: Session, test_settings: Settings) -> TestClient:
    """Create FastAPI test client with test database and sandbox settings"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    return TestClient(app)


@pytest.fixture
def approved_loan(db: Session) -> Loan:
    """Loan approved by the group and waiting for payout"""
    loan = Loan(
        user_id="user_1",
        chama_id="chama_1",
        amount=Decimal("5000"),
        status=LoanStatus.APPROVED.value,
    )
    db.add(loan)
    db.commit()
    return loan


@pytest.fixture
def pending_transaction(db: Session) -> Transaction:
    """Contribution whose STK push was accepted and awaits the callback"""
    transaction = Transaction(
        user_id="user_1",
        chama_id="chama_1",
        amount=Decimal("100.00"),
        type=TransactionKind.CONTRIBUTION.value,
        status=TransactionStatus.PENDING.value,
        phone_number="254712345678",
        description="Chama contribution",
        gateway_ref="ws_CO_191020261200001",
    )
    db.add(transaction)
    db.commit()
    return transaction


@pytest.fixture
def callback_body():
    """Builder for gateway callback envelopes"""

    def build(
        checkout_request_id: str,
        result_code: int = 0,
        result_desc: str = "The service request is processed successfully.",
        items: list | None = None,
    ) -> dict:
        stk = {
            "MerchantRequestID": "29115-34620561-1",
            "CheckoutRequestID": checkout_request_id,
            "ResultCode": result_code,
            "ResultDesc": result_desc,
        }
        if items is not None:
            stk["CallbackMetadata"] = {"Item": items}
        return {"Body": {"stkCallback": stk}}

    return build
