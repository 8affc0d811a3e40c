"""STK push protocol rules - password, references and callback parsing"""

import base64
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Optional

from chama_pay.domain.exceptions import InvalidCallbackPayload
from chama_pay.domain.models import StkCallback

# Daraja rejects AccountReference values longer than this
ACCOUNT_REFERENCE_MAX_LENGTH = 12

TRANSACTION_TYPE_PAYBILL = "CustomerPayBillOnline"
RESPONSE_CODE_ACCEPTED = "0"


def stk_password(shortcode: str, passkey: str, timestamp: str) -> str:
    """Base64 of shortcode + passkey + timestamp (same timestamp as the request body)"""
    raw = f"{shortcode}{passkey}{timestamp}".encode("utf-8")
    return base64.b64encode(raw).decode("utf-8")


def account_reference(transaction_id: Any) -> str:
    """Short form of the transaction id that fits the gateway's length limit"""
    return str(transaction_id)[:ACCOUNT_REFERENCE_MAX_LENGTH]


def gateway_amount(amount: Decimal) -> int:
    """The gateway only accepts whole shillings; round half up"""
    return int(Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_accepted(response_body: Dict[str, Any]) -> bool:
    return str(response_body.get("ResponseCode")) == RESPONSE_CODE_ACCEPTED


def parse_stk_callback(payload: Any) -> StkCallback:
    """
    Extract the stkCallback section of a gateway webhook body.

    Expected shape:
        {"Body": {"stkCallback": {"CheckoutRequestID": ..., "ResultCode": 0,
                                  "ResultDesc": ..., "CallbackMetadata": {"Item": [...]}}}}

    Raises:
        InvalidCallbackPayload: When the envelope or correlation fields are missing
    """
    try:
        stk = payload["Body"]["stkCallback"]
        checkout_request_id = stk["CheckoutRequestID"]
        result_code = int(stk["ResultCode"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidCallbackPayload(f"Malformed callback payload: {e!r}") from e

    if not checkout_request_id:
        raise InvalidCallbackPayload("Callback has an empty CheckoutRequestID")

    receipt_number: Optional[str] = None
    amount: Optional[Decimal] = None

    metadata = stk.get("CallbackMetadata")
    items = metadata.get("Item") if isinstance(metadata, dict) else None
    for item in items if isinstance(items, list) else []:
        if not isinstance(item, dict):
            continue
        name = item.get("Name")
        value = item.get("Value")
        if name == "MpesaReceiptNumber" and value:
            receipt_number = str(value)
        elif name == "Amount" and value is not None:
            try:
                amount = Decimal(str(value))
            except InvalidOperation:
                amount = None

    return StkCallback(
        checkout_request_id=str(checkout_request_id),
        result_code=result_code,
        result_desc=str(stk.get("ResultDesc") or ""),
        receipt_number=receipt_number,
        amount=amount,
        merchant_request_id=stk.get("MerchantRequestID"),
    )
