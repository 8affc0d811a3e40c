"""SQLAlchemy ORM models for transactions, contributions and loans"""

import uuid
from sqlalchemy import Column, DateTime, Numeric, Text, Uuid
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from chama_pay.domain.models import LoanStatus, TransactionStatus

Base = declarative_base()


class Transaction(Base):
    """Money movement tracked against the gateway"""

    __tablename__ = "transactions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    chama_id = Column(Text, nullable=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    type = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default=TransactionStatus.PENDING.value, index=True)
    phone_number = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    # CheckoutRequestID while pending, settlement receipt once completed
    gateway_ref = Column(Text, nullable=True, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class Contribution(Base):
    """Ledger entry written once per completed collection"""

    __tablename__ = "contributions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    chama_id = Column(Text, nullable=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(Text, nullable=False, default=TransactionStatus.COMPLETED.value)
    payment_method = Column(Text, nullable=False, default="mpesa")
    transaction_ref = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Loan(Base):
    """Group loan; created and approved elsewhere, disbursed here"""

    __tablename__ = "loans"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    chama_id = Column(Text, nullable=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(Text, nullable=False, default=LoanStatus.PENDING.value)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
