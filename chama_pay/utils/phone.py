"""MSISDN normalization for the M-Pesa gateway"""

import re

_WHITESPACE = re.compile(r"\s+")


def normalize_phone(phone_number: str, country_code: str = "254") -> str:
    """
    Rewrite a subscriber number into the gateway's international form.

    - "0712 345 678"  -> "254712345678" (national trunk prefix replaced)
    - "+254712345678" -> "254712345678" (leading + dropped)
    - anything else is returned without whitespace but otherwise untouched

    Normalizing an already normalized number returns it unchanged.
    """
    phone = _WHITESPACE.sub("", phone_number)
    if phone.startswith("0"):
        return country_code + phone[1:]
    if phone.startswith("+"):
        return phone[1:]
    return phone
