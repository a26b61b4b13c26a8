"""
Date helpers for stay periods and rent arithmetic.
"""
from datetime import datetime, date
from calendar import monthrange
from typing import Optional, Union


def add_months(start: date, months: int) -> date:
    """
    Shift a date by whole calendar months.

    The day of month is kept, clamped to the last day of the target month:
    - 2024-01-15 + 3 -> 2024-04-15
    - 2024-01-31 + 1 -> 2024-02-29
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    _, last_day = monthrange(year, month)
    return date(year, month, min(start.day, last_day))


def months_between(start: date, end: date) -> int:
    """Calendar-month difference (end - start), ignoring the day of month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def format_date_iso(d: date) -> str:
    """Format date as ISO (YYYY-MM-DD)."""
    return d.isoformat()


def parse_date(value: Union[str, date, None]) -> Optional[date]:
    """Parse YYYY-MM-DD (or a full ISO timestamp) to a date object."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    except ValueError:
        try:
            return datetime.strptime(value, "%m/%d/%Y").date()
        except ValueError:
            return None
