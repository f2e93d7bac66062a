"""Helpers for the date strings stored on CRM documents."""

from datetime import date


def parse_day(value: str | None) -> date | None:
    """Parse a ``YYYY-MM-DD`` string, tolerating a trailing time component.

    Returns None for missing or unparseable values.
    """
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def require_day(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string supplied as a tool argument.

    Raises:
        ValueError: If the value is not a valid date
    """
    parsed = parse_day(value)
    if parsed is None:
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD")
    return parsed


def days_until_birthday(birthday: str, today: date) -> int | None:
    """Days from today until the next occurrence of an ``MM-DD`` birthday."""
    try:
        month, day = (int(part) for part in birthday.split("-")[-2:])
    except ValueError:
        return None

    for year in (today.year, today.year + 1):
        try:
            occurrence = date(year, month, day)
        except ValueError:
            # Feb 29 outside a leap year
            if (month, day) != (2, 29):
                return None
            occurrence = date(year, 3, 1)
        if occurrence >= today:
            return (occurrence - today).days
    return None
