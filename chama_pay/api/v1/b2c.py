"""POST /v1/mpesa/b2c - Loan disbursement initiator (business to customer)"""

import time
import logging
import uuid

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from chama_pay.api.v1.schemas import DisbursementRequest, DisbursementResponse
from chama_pay.api.dependencies import get_mpesa_client, get_request_id, get_settings
from chama_pay.config import Settings
from chama_pay.domain.exceptions import GatewayNotConfigured, LoanNotDisbursable, StorageError
from chama_pay.domain.models import TransactionKind, TransactionStatus
from chama_pay.domain.validation import require_fields, require_positive
from chama_pay.infrastructure.clients.mpesa import MpesaClient
from chama_pay.infrastructure.database.repositories import LoanRepository, TransactionRepository
from chama_pay.infrastructure.database.session import commit, get_db
from chama_pay.infrastructure.observability.logging import log_disbursement
from chama_pay.infrastructure.observability.metrics import record_disbursement
from chama_pay.utils.date_utils import utcnow
from chama_pay.utils.phone import normalize_phone

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/mpesa/b2c", response_model=DisbursementResponse)
async def disburse_loan(
    request_body: DisbursementRequest,
    request: Request,
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    mpesa_client: MpesaClient = Depends(get_mpesa_client),
):
    """
    Pay an approved loan out to the borrower's phone.

    Flow:
    1. Validate input and normalize the phone number
    2. Check payout credentials
    3. Move the loan approved -> disbursed (committed before the payout)
    4. Submit the payout; no gateway confirmation is awaited
    5. Record a completed loan_disbursement transaction
    """
    start_time = time.time()
    request_id = get_request_id(request)

    require_fields(
        {
            "loan_id": request_body.loan_id,
            "phone_number": request_body.phone_number,
            "amount": request_body.amount,
            "user_id": request_body.user_id,
        }
    )
    require_positive(request_body.amount)
    phone = normalize_phone(request_body.phone_number, config.country_code)

    if not config.payout_configured:
        logger.error("M-Pesa payout credentials not configured", extra={"request_id": request_id})
        raise GatewayNotConfigured()

    try:
        loan_id = uuid.UUID(request_body.loan_id)
    except ValueError:
        raise LoanNotDisbursable(f"Loan {request_body.loan_id} not found")

    # 1. Loan transition, stamped exactly once
    loan_repo = LoanRepository(db)
    try:
        if not loan_repo.mark_disbursed(loan_id, disbursed_at=utcnow()):
            db.rollback()
            record_disbursement("rejected")
            raise LoanNotDisbursable(f"Loan {loan_id} is not approved for disbursement")
        commit(db, "Failed to update loan status")
    except StorageError as e:
        record_disbursement("error")
        logger.error(f"Failed to update loan: {e}", extra={"request_id": request_id, "loan_id": str(loan_id)})
        raise

    # 2. Payout
    payout = await mpesa_client.b2c_payout(
        phone_number=phone,
        amount=request_body.amount,
        remarks=f"Loan disbursement {loan_id}",
    )

    # 3. Ledger row; the payout is already out, so a storage failure is only logged
    try:
        loan = loan_repo.get_by_id(loan_id)
        TransactionRepository(db).create_transaction(
            user_id=request_body.user_id,
            chama_id=loan.chama_id if loan else None,
            amount=request_body.amount,
            kind=TransactionKind.LOAN_DISBURSEMENT,
            status=TransactionStatus.COMPLETED,
            phone_number=phone,
            description="Loan disbursement",
            gateway_ref=payout.reference,
        )
        commit(db, "Failed to record disbursement")
    except StorageError as e:
        logger.error(
            f"Failed to record disbursement transaction: {e}",
            extra={"request_id": request_id, "loan_id": str(loan_id), "reference": payout.reference},
        )

    record_disbursement("disbursed")
    duration_ms = (time.time() - start_time) * 1000
    log_disbursement(request_id, str(loan_id), payout.reference, duration_ms)

    return DisbursementResponse(
        success=True,
        message="Loan disbursed successfully. Check your M-Pesa for the funds.",
    )
