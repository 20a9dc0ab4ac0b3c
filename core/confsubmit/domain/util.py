"""Helpers and utilities."""

import re
import secrets
from typing import Any, Callable, Iterable, List, Optional
from datetime import datetime
from pytz import UTC

SERIAL_NUMBER = re.compile(r'^SUB\d{14}[0-9A-F]{6}$')
"""Serial numbers are a UTC timestamp followed by six random hex digits."""


def get_tzaware_utc_now() -> datetime:
    """Generate a datetime for the current moment in UTC."""
    return datetime.now(UTC)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Make sure that ``value`` is localized to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def list_coerce(factory: Callable[..., Any], data: Iterable) -> List[Any]:
    return [factory(**value) if isinstance(value, dict) else value
            for value in data]


def generate_serial_number(now: Optional[datetime] = None) -> str:
    """
    Generate a candidate serial number for a submission.

    The suffix is drawn from :mod:`secrets`, so collisions within the same
    second are unlikely but still possible. Callers must be prepared to
    retry with a fresh candidate.
    """
    if now is None:
        now = get_tzaware_utc_now()
    suffix = secrets.token_hex(3).upper()
    return f"SUB{now.strftime('%Y%m%d%H%M%S')}{suffix}"
