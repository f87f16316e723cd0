# app/utils/phone.py
from typing import Optional

import phonenumbers
from phonenumbers import PhoneNumberFormat

from app.core.config import settings


def normalize_phone(raw: Optional[str], region: Optional[str] = None) -> Optional[str]:
    """
    Normalize a customer phone number to E.164.
    Numbers without a country code are read in ``region`` (DEFAULT_PHONE_REGION).
    Returns None for empty input, raises ValueError for numbers that cannot be dialled.
    """
    if raw is None or not str(raw).strip():
        return None
    try:
        parsed = phonenumbers.parse(str(raw).strip(), region or settings.DEFAULT_PHONE_REGION)
    except phonenumbers.NumberParseException as exc:
        raise ValueError(f"invalid phone number: {raw}") from exc
    if not (phonenumbers.is_valid_number(parsed) or phonenumbers.is_possible_number(parsed)):
        raise ValueError(f"invalid phone number: {raw}")
    return phonenumbers.format_number(parsed, PhoneNumberFormat.E164)
