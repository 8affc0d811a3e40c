"""POST /v1/mpesa/stk-push - Collection initiator (customer to business)"""

import time
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from chama_pay.api.v1.schemas import StkPushRequest, StkPushResponse
from chama_pay.api.dependencies import get_mpesa_client, get_request_id, get_settings
from chama_pay.config import Settings
from chama_pay.domain.exceptions import (
    DomainException,
    GatewayNotConfigured,
    GatewayRejected,
    GatewayUnavailable,
    StorageError,
)
from chama_pay.domain.models import TransactionKind
from chama_pay.domain.stk import account_reference
from chama_pay.domain.validation import require_fields, require_positive
from chama_pay.infrastructure.clients.mpesa import MpesaClient
from chama_pay.infrastructure.database.repositories import TransactionRepository
from chama_pay.infrastructure.database.session import commit, get_db
from chama_pay.infrastructure.observability.logging import log_collection
from chama_pay.infrastructure.observability.metrics import record_stk_push
from chama_pay.utils.phone import normalize_phone

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_DESCRIPTION = "Chama contribution"


@router.post("/mpesa/stk-push", response_model=StkPushResponse)
async def initiate_stk_push(
    request_body: StkPushRequest,
    request: Request,
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    mpesa_client: MpesaClient = Depends(get_mpesa_client),
):
    """
    Prompt the payer's phone for a contribution payment.

    Flow:
    1. Validate input and normalize the phone number
    2. Check gateway configuration
    3. Obtain a Daraja access token
    4. Persist a pending transaction (committed before any push is sent)
    5. Submit the STK push and store the CheckoutRequestID
    6. Return; the final outcome arrives later through the callback
    """
    start_time = time.time()
    request_id = get_request_id(request)

    require_fields(
        {
            "phone_number": request_body.phone_number,
            "amount": request_body.amount,
            "chama_id": request_body.chama_id,
            "user_id": request_body.user_id,
        }
    )
    require_positive(request_body.amount)
    phone = normalize_phone(request_body.phone_number, config.country_code)

    if not config.collection_configured:
        logger.error("M-Pesa credentials not configured", extra={"request_id": request_id})
        raise GatewayNotConfigured()

    try:
        # 1. Token
        access_token = await mpesa_client.get_access_token()

        # 2. Pending transaction, durable before the push goes out
        description = request_body.description or DEFAULT_DESCRIPTION
        transaction_repo = TransactionRepository(db)
        db_transaction = transaction_repo.create_transaction(
            user_id=request_body.user_id,
            chama_id=request_body.chama_id,
            amount=request_body.amount,
            kind=TransactionKind.CONTRIBUTION,
            phone_number=phone,
            description=description,
        )
        transaction_id = db_transaction.id
        commit(db, "Failed to initiate transaction")

    except DomainException as e:
        record_stk_push("error")
        logger.error(f"STK push not started: {e}", extra={"request_id": request_id})
        raise

    # 3. Push payment
    try:
        result = await mpesa_client.stk_push(
            access_token=access_token,
            phone_number=phone,
            amount=request_body.amount,
            account_reference=account_reference(transaction_id),
            description=request_body.description or "Chama Contribution",
        )
    except GatewayUnavailable as e:
        # No CheckoutRequestID was stored, so no callback can ever settle this row
        record_stk_push("unavailable")
        logger.error(f"STK push unavailable: {e}", extra={"request_id": request_id})
        _mark_failed(db, transaction_id, request_id)
        raise

    if not result.accepted:
        record_stk_push("rejected")
        logger.warning(
            "STK push rejected",
            extra={"request_id": request_id, "transaction_id": str(transaction_id), "response": result.raw},
        )
        _mark_failed(db, transaction_id, request_id)
        raise GatewayRejected(result.error_message)

    # 4. Correlate; the money request is already out, so a storage failure is only logged
    try:
        transaction_repo.set_gateway_ref(transaction_id, result.checkout_request_id)
        commit(db)
    except StorageError as e:
        logger.error(
            f"Failed to store CheckoutRequestID: {e}",
            extra={
                "request_id": request_id,
                "transaction_id": str(transaction_id),
                "checkout_request_id": result.checkout_request_id,
            },
        )

    record_stk_push("accepted")
    duration_ms = (time.time() - start_time) * 1000
    log_collection(request_id, str(transaction_id), "accepted", result.checkout_request_id, duration_ms)

    return StkPushResponse(
        success=True,
        message="STK Push sent. Please enter your M-Pesa PIN.",
        transaction_id=str(transaction_id),
        checkout_request_id=result.checkout_request_id,
    )


def _mark_failed(db: Session, transaction_id, request_id: str) -> None:
    try:
        TransactionRepository(db).mark_failed(transaction_id)
        commit(db)
    except StorageError as e:
        logger.error(
            f"Failed to mark transaction failed: {e}",
            extra={"request_id": request_id, "transaction_id": str(transaction_id)},
        )
