"""Shared validation utilities"""

import re
from datetime import date
from typing import Iterable, Optional

from fastapi import HTTPException

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase, stripped email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email format")
    return email


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Loose international phone check: 7-15 digits, optional leading +.
    Formatting characters are kept as entered.
    """
    if not phone:
        return phone

    phone = phone.strip()
    digits = re.sub(r"\D", "", phone)
    if not 7 <= len(digits) <= 15:
        raise ValueError("Phone number must contain 7 to 15 digits")
    return phone


def validate_choice(value: Optional[str], choices: Iterable[str], field: str) -> Optional[str]:
    if value is None:
        return value
    choices = tuple(choices)
    if value not in choices:
        raise ValueError(f"{field} must be one of: {', '.join(choices)}")
    return value


def parse_date_param(value: Optional[str], name: str) -> date:
    """Parse a required YYYY-MM-DD query parameter, 400 on failure"""
    if not value:
        raise HTTPException(status_code=400, detail=f"{name} is required")
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise HTTPException(
            status_code=400, detail=f"{name} must be a date in YYYY-MM-DD format"
        ) from None


def require_date_range(start: date, end: date) -> None:
    if end < start:
        raise HTTPException(status_code=400, detail="endDate must be on or after startDate")
