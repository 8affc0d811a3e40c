"""Data access layer for transactions, contributions and loans"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chama_pay.domain.exceptions import StorageError
from chama_pay.domain.models import LoanStatus, TransactionKind, TransactionStatus
from chama_pay.infrastructure.database.models import Contribution, Loan, Transaction


class TransactionRepository:
    """Repository for gateway transactions"""

    def __init__(self, db: Session):
        self.db = db

    def create_transaction(
        self,
        user_id: str,
        chama_id: Optional[str],
        amount: Decimal,
        kind: TransactionKind,
        phone_number: str,
        description: str,
        status: TransactionStatus = TransactionStatus.PENDING,
        gateway_ref: Optional[str] = None,
    ) -> Transaction:
        """Add a transaction row and flush to obtain its id"""
        db_transaction = Transaction(
            user_id=user_id,
            chama_id=chama_id,
            amount=amount,
            type=kind.value,
            status=status.value,
            phone_number=phone_number,
            description=description,
            gateway_ref=gateway_ref,
        )
        try:
            self.db.add(db_transaction)
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to initiate transaction") from e
        return db_transaction

    def get_by_id(self, transaction_id: uuid.UUID) -> Optional[Transaction]:
        return self.db.get(Transaction, transaction_id)

    def get_by_gateway_ref(self, gateway_ref: str) -> Optional[Transaction]:
        """Fetch the single transaction correlated with a gateway reference"""
        try:
            return self.db.execute(
                select(Transaction).where(Transaction.gateway_ref == gateway_ref)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Failed to look up gateway reference {gateway_ref}") from e

    def set_gateway_ref(self, transaction_id: uuid.UUID, gateway_ref: str) -> None:
        self._update(transaction_id, gateway_ref=gateway_ref)

    def mark_failed(self, transaction_id: uuid.UUID) -> None:
        """Fail a transaction that never reached the gateway's async leg"""
        self._update(transaction_id, status=TransactionStatus.FAILED.value)

    def complete_if_pending(self, transaction_id: uuid.UUID, gateway_ref: str) -> bool:
        """
        Atomically move pending -> completed and store the settlement reference.

        Returns:
            True when this call performed the transition, False when the row
            had already left the pending state.
        """
        return self._transition_from_pending(
            transaction_id,
            status=TransactionStatus.COMPLETED.value,
            gateway_ref=gateway_ref,
        )

    def fail_if_pending(self, transaction_id: uuid.UUID, description: str) -> bool:
        """Atomically move pending -> failed, replacing the description"""
        return self._transition_from_pending(
            transaction_id,
            status=TransactionStatus.FAILED.value,
            description=description,
        )

    def _transition_from_pending(self, transaction_id: uuid.UUID, **values) -> bool:
        try:
            result = self.db.execute(
                update(Transaction)
                .where(
                    Transaction.id == transaction_id,
                    Transaction.status == TransactionStatus.PENDING.value,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Failed to update transaction {transaction_id}") from e
        return result.rowcount == 1

    def _update(self, transaction_id: uuid.UUID, **values) -> None:
        try:
            self.db.execute(
                update(Transaction)
                .where(Transaction.id == transaction_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Failed to update transaction {transaction_id}") from e


class ContributionRepository:
    """Repository for chama contribution ledger entries"""

    def __init__(self, db: Session):
        self.db = db

    def create_contribution(
        self,
        user_id: str,
        chama_id: Optional[str],
        amount: Decimal,
        transaction_ref: str,
        payment_method: str = "mpesa",
    ) -> Contribution:
        db_contribution = Contribution(
            user_id=user_id,
            chama_id=chama_id,
            amount=amount,
            status=TransactionStatus.COMPLETED.value,
            payment_method=payment_method,
            transaction_ref=transaction_ref,
        )
        try:
            self.db.add(db_contribution)
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to record contribution") from e
        return db_contribution


class LoanRepository:
    """Repository for the loan transitions owned by the payout flow"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, loan_id: uuid.UUID) -> Optional[Loan]:
        try:
            return self.db.get(Loan, loan_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Failed to load loan {loan_id}") from e

    def mark_disbursed(self, loan_id: uuid.UUID, disbursed_at: datetime) -> bool:
        """
        Atomically move approved -> disbursed and stamp the disbursement time.

        Returns:
            False when the loan is missing or not approved, so the timestamp
            is only ever written once.

        Raises:
            StorageError: The update itself failed
        """
        try:
            result = self.db.execute(
                update(Loan)
                .where(Loan.id == loan_id, Loan.status == LoanStatus.APPROVED.value)
                .values(status=LoanStatus.DISBURSED.value, disbursed_at=disbursed_at)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to update loan status") from e
        return result.rowcount == 1
