"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "chama-pay"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = SERVICE_NAME


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_collection(
    request_id: str,
    transaction_id: str,
    outcome: str,
    checkout_request_id: Optional[str],
    duration_ms: float,
) -> None:
    """Log the outcome of an STK push initiation"""
    logging.info(
        "Collection initiated",
        extra={
            "request_id": request_id,
            "transaction_id": transaction_id,
            "step": "stk_push_complete",
            "outcome": outcome,
            "checkout_request_id": checkout_request_id,
            "duration_ms": duration_ms,
        },
    )


def log_callback(
    request_id: str,
    checkout_request_id: Optional[str],
    outcome: str,
    result_code: Optional[int] = None,
    transaction_id: Optional[str] = None,
) -> None:
    """Log how a gateway callback was reconciled"""
    logging.info(
        "Callback reconciled",
        extra={
            "request_id": request_id,
            "checkout_request_id": checkout_request_id,
            "transaction_id": transaction_id,
            "step": "callback_complete",
            "outcome": outcome,
            "result_code": result_code,
        },
    )


def log_disbursement(request_id: str, loan_id: str, reference: str, duration_ms: float) -> None:
    logging.info(
        "Loan disbursed",
        extra={
            "request_id": request_id,
            "loan_id": loan_id,
            "reference": reference,
            "step": "disbursement_complete",
            "duration_ms": duration_ms,
        },
    )
