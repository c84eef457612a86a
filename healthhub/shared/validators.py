"""Shared validation utilities"""

import re
from datetime import date, datetime
from typing import Optional

PIN_PATTERN = re.compile(r"[0-9]{4,6}")
USERNAME_PATTERN = re.compile(r"[a-zA-Z0-9_]{3,20}")
TIME_PATTERN = re.compile(r"([01][0-9]|2[0-3]):[0-5][0-9](:[0-5][0-9])?")


def validate_pin_format(pin: Optional[str]) -> bool:
    """PINs are 4 to 6 digits"""
    return bool(pin) and bool(PIN_PATTERN.fullmatch(pin))


def normalize_username(username: Optional[str]) -> str:
    """
    Validate an employee username and return it lowercased.

    Raises:
        ValueError: If username is not 3-20 letters, digits or underscores
    """
    username = (username or "").strip()
    if not USERNAME_PATTERN.fullmatch(username):
        raise ValueError(
            "Username must be 3-20 characters (letters, numbers, underscores only)"
        )
    return username.lower()


def validate_time(value: Optional[str]) -> Optional[str]:
    """
    Validate an 'HH:MM' time of day, returns it normalized to 'HH:MM'.

    Raises:
        ValueError: If the value is not a valid time
    """
    if value is None:
        return value
    value = value.strip()
    if not TIME_PATTERN.fullmatch(value):
        raise ValueError("Time must be in HH:MM format")
    return value[:5]


def parse_date(value) -> date:
    """
    Parse 'YYYY-MM-DD' (or an ISO datetime) into a date.

    Raises:
        ValueError: If the value is not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as e:
        raise ValueError("Invalid date format. Use YYYY-MM-DD") from e
