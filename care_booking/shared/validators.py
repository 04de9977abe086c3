"""Shared validation utilities"""

import re
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_time_of_day(value: str) -> str:
    """
    Validate a local wall-clock time in 24h HH:MM format.

    Raises:
        ValueError: If the value is not a valid HH:MM time
    """
    if not isinstance(value, str) or not HHMM_PATTERN.match(value.strip()):
        raise ValueError(f"Invalid time '{value}', expected HH:MM (00:00-23:59)")
    return value.strip()


def time_to_minutes(value: str) -> int:
    """Minutes since local midnight for a validated HH:MM string"""
    hours, minutes = validate_time_of_day(value).split(":")
    return int(hours) * 60 + int(minutes)


def validate_timezone_name(name: Optional[str]) -> str:
    """
    Validate an IANA timezone identifier (e.g. America/New_York).

    Raises:
        ValueError: If the zone is unknown
    """
    if not name or not isinstance(name, str):
        raise ValueError("Timezone is required")
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone '{name}'") from e
    return name


def validate_day_of_week(value: int) -> int:
    """Day of week, 0=Sunday through 6=Saturday"""
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 6:
        raise ValueError("dayOfWeek must be an integer between 0 (Sunday) and 6 (Saturday)")
    return value
