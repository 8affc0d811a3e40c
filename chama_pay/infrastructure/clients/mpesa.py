"""M-Pesa Daraja HTTP client for STK push collections and B2C payouts"""

import logging
import time
import uuid
from decimal import Decimal
from typing import Any, Dict

import httpx

from chama_pay.config import Settings, settings as default_settings
from chama_pay.domain.exceptions import GatewayAuthFailed, GatewayUnavailable
from chama_pay.domain.models import PayoutResult, StkPushResult
from chama_pay.domain.stk import (
    TRANSACTION_TYPE_PAYBILL,
    gateway_amount,
    is_accepted,
    stk_password,
)
from chama_pay.infrastructure.observability.metrics import gateway_latency_histogram
from chama_pay.utils.date_utils import gateway_timestamp

logger = logging.getLogger(__name__)


class MpesaClient:
    """Client for the Safaricom Daraja API"""

    def __init__(
        self,
        config: Settings | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or default_settings
        self.base_url = self.config.mpesa_base_url.rstrip("/")
        self.timeout = timeout or self.config.http_timeout_seconds
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def get_access_token(self) -> str:
        """
        Exchange consumer key/secret for a bearer token.

        Raises:
            GatewayAuthFailed: Non-success response or no token in the body
            GatewayUnavailable: Timeout or network failure
        """
        async with self._client() as client:
            try:
                with gateway_latency_histogram.labels(operation="oauth").time():
                    response = await client.get(
                        f"{self.base_url}/oauth/v1/generate",
                        params={"grant_type": "client_credentials"},
                        auth=(self.config.mpesa_consumer_key or "", self.config.mpesa_consumer_secret or ""),
                        headers={"Accept": "application/json"},
                    )
            except httpx.TimeoutException as e:
                raise GatewayUnavailable(f"M-Pesa OAuth timeout after {self.timeout}s") from e
            except httpx.RequestError as e:
                raise GatewayUnavailable(f"M-Pesa OAuth unreachable: {e}") from e

        if response.status_code != 200:
            logger.error(
                "M-Pesa OAuth rejected",
                extra={"status_code": response.status_code, "body": response.text[:500]},
            )
            raise GatewayAuthFailed()

        try:
            token = response.json().get("access_token")
        except ValueError as e:
            raise GatewayAuthFailed() from e

        if not token:
            raise GatewayAuthFailed()
        return token

    async def stk_push(
        self,
        access_token: str,
        phone_number: str,
        amount: Decimal,
        account_reference: str,
        description: str,
    ) -> StkPushResult:
        """
        Submit a Lipa na M-Pesa Online push-payment.

        Non-accepted answers are returned, not raised, so the caller can
        record the gateway's own error message.

        Raises:
            GatewayUnavailable: Timeout, network failure or a non-JSON body
        """
        timestamp = gateway_timestamp()
        shortcode = self.config.mpesa_shortcode
        payload = {
            "BusinessShortCode": shortcode,
            "Password": stk_password(shortcode, self.config.mpesa_passkey, timestamp),
            "Timestamp": timestamp,
            "TransactionType": TRANSACTION_TYPE_PAYBILL,
            "Amount": gateway_amount(amount),
            "PartyA": phone_number,
            "PartyB": shortcode,
            "PhoneNumber": phone_number,
            "CallBackURL": self.config.callback_url,
            "AccountReference": account_reference,
            "TransactionDesc": description,
        }
        headers = {"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"}

        async with self._client() as client:
            try:
                with gateway_latency_histogram.labels(operation="stk_push").time():
                    response = await client.post(
                        f"{self.base_url}/mpesa/stkpush/v1/processrequest",
                        json=payload,
                        headers=headers,
                    )
            except httpx.TimeoutException as e:
                raise GatewayUnavailable(f"M-Pesa STK push timeout after {self.timeout}s") from e
            except httpx.RequestError as e:
                raise GatewayUnavailable(f"M-Pesa STK push unreachable: {e}") from e

        try:
            body: Dict[str, Any] = response.json()
        except ValueError as e:
            raise GatewayUnavailable(
                f"M-Pesa STK push returned non-JSON body (HTTP {response.status_code})"
            ) from e

        accepted = response.status_code == 200 and is_accepted(body)
        return StkPushResult(
            accepted=accepted,
            checkout_request_id=body.get("CheckoutRequestID"),
            merchant_request_id=body.get("MerchantRequestID"),
            error_message=None if accepted else (body.get("errorMessage") or body.get("ResponseDescription")),
            raw=body,
        )

    async def b2c_payout(self, phone_number: str, amount: Decimal, remarks: str) -> PayoutResult:
        """
        Business-to-customer payout.

        Simulated: nothing is sent to the gateway and no confirmation is
        awaited. The submission itself is treated as the disbursement.
        """
        # Unique per payout, even within the same millisecond (gateway_ref is unique)
        reference = f"SIM{int(time.time() * 1000)}{uuid.uuid4().hex[:8].upper()}"
        logger.info(
            "Simulating B2C disbursement",
            extra={"phone_number": phone_number, "amount": str(amount), "reference": reference, "remarks": remarks},
        )
        return PayoutResult(reference=reference, phone_number=phone_number, amount=Decimal(amount))
