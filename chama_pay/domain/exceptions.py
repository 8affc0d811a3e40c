"""Domain-specific exceptions"""

from typing import Any, Dict


class DomainException(Exception):
    """Base exception for domain layer"""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class MissingField(DomainException):
    """Required request input is absent"""

    status_code = 400
    default_message = "Missing required fields"


class InvalidAmount(DomainException):
    """Amount is not a positive number"""

    status_code = 400
    default_message = "Amount must be greater than zero"


class GatewayNotConfigured(DomainException):
    """Gateway credentials, shortcode or passkey missing from settings"""

    status_code = 500
    default_message = "M-Pesa integration not configured"


class GatewayAuthFailed(DomainException):
    """Access token could not be obtained from the gateway"""

    status_code = 500
    default_message = "Failed to authenticate with M-Pesa"


class GatewayRejected(DomainException):
    """Gateway explicitly declined a push-payment or payout request"""

    status_code = 400
    default_message = "STK Push failed"

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message}


class GatewayUnavailable(DomainException):
    """Gateway call timed out or the network failed"""

    status_code = 503
    default_message = "M-Pesa service unavailable"


class StorageError(DomainException):
    """Record store operation failed"""

    status_code = 500
    default_message = "Storage operation failed"


class LoanNotDisbursable(DomainException):
    """Loan does not exist or is not awaiting disbursement"""

    status_code = 409
    default_message = "Loan is not approved for disbursement"


class InvalidCallbackPayload(DomainException):
    """Gateway callback body does not have the expected shape"""

    status_code = 400
    default_message = "Malformed callback payload"
