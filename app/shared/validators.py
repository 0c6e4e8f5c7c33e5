"""Shared validation utilities"""

import re
import uuid
from typing import Optional


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError):
        return False


def validate_ie_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize an Irish phone number to E.164 format.

    Accepts national numbers ("087 123 4567", "01 234 5678") and numbers
    already carrying the +353 / 00353 prefix.

    Returns:
        Normalized phone number (+353XXXXXXXXX)

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)

    if digits.startswith("00353"):
        digits = digits[5:]
    elif digits.startswith("353"):
        digits = digits[3:]
    elif digits.startswith("0"):
        digits = digits[1:]

    # National significant numbers are 7-9 digits
    if not 7 <= len(digits) <= 9:
        raise ValueError("Phone number must be a valid Irish number")

    return f"+353{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email
