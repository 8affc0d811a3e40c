"""Input checks shared by the payment handlers"""

from decimal import Decimal
from typing import Any, Dict, Optional

from chama_pay.domain.exceptions import InvalidAmount, MissingField


def require_fields(values: Dict[str, Any]) -> None:
    """Raise MissingField naming every absent or blank input"""
    missing = [
        name for name, value in values.items()
        if value is None or (isinstance(value, str) and not value.strip())
    ]
    if missing:
        raise MissingField(f"Missing required fields: {', '.join(missing)}")


def require_positive(amount: Optional[Decimal]) -> None:
    if amount is None or not amount.is_finite() or amount <= 0:
        raise InvalidAmount()
