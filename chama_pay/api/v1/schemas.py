"""Pydantic schemas for API request/response validation"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class StkPushRequest(BaseModel):
    """Request body for POST /v1/mpesa/stk-push

    Fields are optional at the schema level so that absent input is
    reported as a MissingField error rather than a 422.
    """

    phone_number: Optional[str] = Field(None, description="Payer MSISDN, any common format")
    amount: Optional[Decimal] = Field(None, description="Contribution amount in KES")
    chama_id: Optional[str] = Field(None, description="Group identifier")
    user_id: Optional[str] = Field(None, description="Payer identifier")
    description: Optional[str] = None


class StkPushResponse(BaseModel):
    """Response for an accepted STK push"""

    success: bool
    message: str
    transaction_id: Optional[str] = None
    checkout_request_id: Optional[str] = None


class DisbursementRequest(BaseModel):
    """Request body for POST /v1/mpesa/b2c"""

    loan_id: Optional[str] = None
    phone_number: Optional[str] = None
    amount: Optional[Decimal] = None
    user_id: Optional[str] = None


class DisbursementResponse(BaseModel):
    success: bool
    message: str


class CallbackAck(BaseModel):
    """Acknowledgement the gateway expects for every callback"""

    ResultCode: int = 0
    ResultDesc: str = "Accepted"


class TransactionResponse(BaseModel):
    """Response for GET /v1/transactions/{transaction_id}"""

    transaction_id: str
    status: str
    type: str
    amount: Decimal
    phone_number: str
    gateway_ref: Optional[str] = None
    description: Optional[str] = None
    created_at: str
