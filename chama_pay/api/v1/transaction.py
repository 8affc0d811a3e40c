"""GET /v1/transactions/{transaction_id} - Poll the outcome of a payment"""

import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from chama_pay.api.v1.schemas import TransactionResponse
from chama_pay.infrastructure.database.session import get_db
from chama_pay.infrastructure.database.repositories import TransactionRepository

router = APIRouter()


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    """
    Retrieve the current state of a transaction.

    Collections stay pending until the gateway callback arrives, so
    callers re-query here to learn the final outcome.
    """
    try:
        transaction_uuid = uuid.UUID(transaction_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid transaction ID format")

    transaction_repo = TransactionRepository(db)
    transaction = transaction_repo.get_by_id(transaction_uuid)

    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")

    return TransactionResponse(
        transaction_id=str(transaction.id),
        status=transaction.status,
        type=transaction.type,
        amount=transaction.amount,
        phone_number=transaction.phone_number,
        gateway_ref=transaction.gateway_ref,
        description=transaction.description,
        created_at=transaction.created_at.isoformat(),
    )
