"""Date parsing utilities."""

import re
from datetime import date, timedelta
from email.utils import parsedate_to_datetime
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

MONTH_ABBREVIATIONS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
_DAY_MONTH_NAME_YEAR = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{2,4})$")
_DAY_MONTH_YEAR = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})$")
_HAS_MONTH_WORD = re.compile(r"[A-Za-z]{3}")

REPORT_PERIODS = ("this-month", "last-month", "this-year", "all")


def _expand_year(year: int) -> int:
    # Two-digit years are read as 20YY
    return year + 2000 if year < 100 else year


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _parse_native(text: str) -> Optional[date]:
    """Parse ISO 8601, RFC 2822 and spelled-out month forms."""
    if _ISO_PREFIX.match(text):
        try:
            return date_parser.isoparse(text).date()
        except ValueError:
            return None

    if " " in text and _HAS_MONTH_WORD.search(text):
        try:
            return parsedate_to_datetime(text).date()
        except (TypeError, ValueError, IndexError, AttributeError):
            pass
        try:
            return date_parser.parse(text, dayfirst=True).date()
        except (TypeError, ValueError, OverflowError):
            return None

    return None


def parse_flexible_date(date_str: Optional[str]) -> Optional[date]:
    """Parse a date cell from an imported CSV file.

    Tried in order:
    1. ISO 8601 / RFC 2822 (and "8 May 2025" style dates)
    2. D-MMM-YY or D-MMM-YYYY with an English month abbreviation ("8-May-25")
    3. D/M/YYYY, D-M-YYYY, D/M/YY, D-M-YY read as day-month-year

    Two-digit years are interpreted as 2000 + YY.

    Args:
        date_str: Raw cell text

    Returns:
        Parsed date, or None if the text matches none of the forms
    """
    if not date_str:
        return None
    text = date_str.strip()
    if not text:
        return None

    parsed = _parse_native(text)
    if parsed is not None:
        return parsed

    match = _DAY_MONTH_NAME_YEAR.match(text)
    if match:
        month = MONTH_ABBREVIATIONS.get(match.group(2).lower())
        if month is not None:
            return _safe_date(_expand_year(int(match.group(3))), month, int(match.group(1)))

    match = _DAY_MONTH_YEAR.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return _safe_date(_expand_year(year), month, day)

    return None


def parse_date(date_str: str) -> date:
    """Parse a date string typed on the command line.

    Supports absolute dates and a few relative forms:
    - Absolute dates: "2024-01-15", "15/01/2024", "8-May-25", etc.
    - Relative dates: "today", "yesterday", "tomorrow"

    Args:
        date_str: Date string

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    normalized = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if normalized in relative_dates:
        return relative_dates[normalized]

    parsed = parse_flexible_date(date_str)
    if parsed is None:
        raise ValueError(f"Could not parse date '{date_str}'")
    return parsed


def get_date_range(period: str) -> tuple[Optional[date], Optional[date]]:
    """Get start and end dates for a report period.

    Args:
        period: One of this-month, last-month, this-year, all

    Returns:
        Tuple of (start_date, end_date); None means unbounded

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = date.today()

    if period == "this-month":
        return (today.replace(day=1), None)

    elif period == "last-month":
        start_date = (today - relativedelta(months=1)).replace(day=1)
        # Last day of last month (day before first day of current month)
        end_date = today.replace(day=1) - timedelta(days=1)
        return (start_date, end_date)

    elif period == "this-year":
        return (today.replace(month=1, day=1), None)

    elif period == "all":
        return (None, None)

    else:
        raise ValueError(
            f"Unknown period: '{period}'. Supported periods: {', '.join(REPORT_PERIODS)}"
        )
