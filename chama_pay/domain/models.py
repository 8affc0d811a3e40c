"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

# stkCallback ResultCode for a completed payment
RESULT_CODE_SUCCESS = 0


class TransactionStatus(str, Enum):
    """Lifecycle of a money movement: pending -> completed | failed"""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class TransactionKind(str, Enum):
    CONTRIBUTION = "contribution"
    LOAN_DISBURSEMENT = "loan_disbursement"


class LoanStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISBURSED = "disbursed"
    REPAID = "repaid"


@dataclass
class StkCallback:
    """Relevant fields of a gateway stkCallback body"""

    checkout_request_id: str
    result_code: int
    result_desc: str
    receipt_number: Optional[str] = None
    amount: Optional[Decimal] = None
    merchant_request_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.result_code == RESULT_CODE_SUCCESS


@dataclass
class StkPushResult:
    """Outcome of submitting a push-payment to the gateway"""

    accepted: bool
    checkout_request_id: Optional[str]
    merchant_request_id: Optional[str]
    error_message: Optional[str]
    raw: dict


@dataclass
class PayoutResult:
    """Outcome of a business-to-customer payout submission"""

    reference: str
    phone_number: str
    amount: Decimal
