"""Date formatting utilities"""

from datetime import datetime, timezone

GATEWAY_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def gateway_timestamp(now: datetime | None = None) -> str:
    """Format a moment as YYYYMMDDHHMMSS, the form Daraja expects"""
    return (now or datetime.now()).strftime(GATEWAY_TIMESTAMP_FORMAT)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
