"""Utility functions for dates, timestamps and display strings."""

import re
from datetime import date, datetime, timezone

from .constants import UNKNOWN_DATE

_YEAR_ONLY = re.compile(r"^\d{4}$")


def parse_date(value: str | None) -> date | None:
    """Parse an ISO date (or a bare year) into a date.

    Returns None for missing values, the "N/A" sentinel and anything unparseable.
    Timestamps are accepted; only the date part is used.
    """
    if not value or value == UNKNOWN_DATE:
        return None
    text = str(value).strip()
    if _YEAR_ONLY.match(text):
        return date(int(text), 1, 1)
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def is_known_date(value: str | None) -> bool:
    return parse_date(value) is not None


def calculate_age(dob: str | None, today: date | None = None) -> int | None:
    """Whole years between dob and today, floored at 0.

    None when the date is absent, "N/A" or unparseable.
    """
    birth = parse_date(dob)
    if birth is None:
        return None
    today = today or date.today()
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return max(age, 0)


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def timestamp_ms(value: str | None) -> float | None:
    """Milliseconds since the epoch for an ISO timestamp, or None."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp() * 1000


def capitalize(value: str | None) -> str:
    """Uppercase the first character only ("hindu" -> "Hindu")."""
    if not value:
        return ""
    return value[0].upper() + value[1:]


def first_name(name: str | None) -> str:
    """First whitespace-delimited token of a name, or an empty string."""
    parts = (name or "").split()
    return parts[0] if parts else ""


def get_ordinal(n: int) -> str:
    """1 -> "1st", 2 -> "2nd", 11 -> "11th"."""
    if n <= 0:
        return str(n)
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"
