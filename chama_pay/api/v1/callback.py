"""POST /v1/mpesa/callback - STK result webhook (callback reconciler)"""

import json
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from chama_pay.api.v1.schemas import CallbackAck
from chama_pay.api.dependencies import get_request_id
from chama_pay.domain.exceptions import InvalidCallbackPayload, StorageError
from chama_pay.domain.models import StkCallback
from chama_pay.domain.stk import parse_stk_callback
from chama_pay.infrastructure.database.repositories import ContributionRepository, TransactionRepository
from chama_pay.infrastructure.database.session import commit, get_db
from chama_pay.infrastructure.observability.logging import log_callback
from chama_pay.infrastructure.observability.metrics import record_callback

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/mpesa/callback", response_model=CallbackAck)
async def mpesa_callback(request: Request, db: Session = Depends(get_db)):
    """
    Reconcile a gateway STK result against its pending transaction.

    The gateway does not redeliver, so every invocation is acknowledged
    with ResultCode 0, whether or not it matched or was well formed.
    Only the side effects differ:
    - unmatched CheckoutRequestID: dropped
    - ResultCode 0: transaction completed, one contribution recorded
    - any other ResultCode: transaction failed with the gateway's reason
    - transaction already settled: no-op
    """
    request_id = get_request_id(request)

    try:
        payload = json.loads(await request.body())
        callback = parse_stk_callback(payload)
    except (ValueError, InvalidCallbackPayload) as e:
        record_callback("malformed")
        logger.error(f"Callback processing error: {e}", extra={"request_id": request_id})
        return CallbackAck()

    try:
        outcome, transaction_id = reconcile(db, callback)
    except StorageError as e:
        record_callback("error")
        logger.error(
            f"Callback storage error: {e}",
            extra={"request_id": request_id, "checkout_request_id": callback.checkout_request_id},
        )
        return CallbackAck()
    except Exception:
        # The gateway only understands the acknowledgement; never answer it with a 500
        db.rollback()
        record_callback("error")
        logger.exception(
            "Unexpected callback error",
            extra={"request_id": request_id, "checkout_request_id": callback.checkout_request_id},
        )
        return CallbackAck()

    record_callback(outcome)
    log_callback(request_id, callback.checkout_request_id, outcome, callback.result_code, transaction_id)
    return CallbackAck()


def reconcile(db: Session, callback: StkCallback) -> tuple[str, str | None]:
    """
    Apply one callback. Returns the outcome label and the matched transaction id.

    Status changes are conditional on the row still being pending, and the
    contribution is only written by the caller that won that transition,
    so duplicate deliveries cannot create a second contribution.
    """
    transaction_repo = TransactionRepository(db)
    db_transaction = transaction_repo.get_by_gateway_ref(callback.checkout_request_id)
    if db_transaction is None:
        logger.warning("Transaction not found", extra={"checkout_request_id": callback.checkout_request_id})
        return "unmatched", None

    transaction_id = db_transaction.id

    if callback.succeeded:
        settlement_ref = callback.receipt_number or callback.checkout_request_id
        if not transaction_repo.complete_if_pending(transaction_id, settlement_ref):
            db.rollback()
            return "duplicate", str(transaction_id)

        ContributionRepository(db).create_contribution(
            user_id=db_transaction.user_id,
            chama_id=db_transaction.chama_id,
            amount=callback.amount if callback.amount is not None else db_transaction.amount,
            transaction_ref=settlement_ref,
        )
        commit(db, "Failed to complete transaction")
        logger.info(
            "Payment processed successfully",
            extra={"transaction_id": str(transaction_id), "receipt": callback.receipt_number},
        )
        return "completed", str(transaction_id)

    description = f"{db_transaction.description} - Failed: {callback.result_desc}"
    if not transaction_repo.fail_if_pending(transaction_id, description):
        db.rollback()
        return "duplicate", str(transaction_id)

    commit(db, "Failed to mark transaction failed")
    logger.info("Payment failed", extra={"transaction_id": str(transaction_id), "reason": callback.result_desc})
    return "failed", str(transaction_id)
