"""Tests for date parsing utilities."""

from datetime import date, timedelta

import pytest

from lekha.utils.date_parser import get_date_range, parse_date, parse_flexible_date


@pytest.mark.parametrize(
    "text,expected",
    [
        ("2024-01-15", date(2024, 1, 15)),
        ("2024-01-15T10:30:00", date(2024, 1, 15)),
        ("8-May-25", date(2025, 5, 8)),
        ("8-may-2025", date(2025, 5, 8)),
        ("31/12/2023", date(2023, 12, 31)),
        ("1/2/2024", date(2024, 2, 1)),
        ("05-03-24", date(2024, 3, 5)),
        ("8 May 2025", date(2025, 5, 8)),
        ("Thu, 08 May 2025 10:00:00 +0000", date(2025, 5, 8)),
    ],
)
def test_parse_flexible_date(text, expected):
    """Supported forms parse to the expected calendar date."""
    assert parse_flexible_date(text) == expected


@pytest.mark.parametrize(
    "text",
    ["", "   ", None, "hello", "12345", "31/02/2024", "8-Foo-25", "2024-13-45"],
)
def test_parse_flexible_date_rejects(text):
    """Unparseable or impossible dates give None."""
    assert parse_flexible_date(text) is None


def test_day_first_is_strict():
    """Numeric dates are always day-month-year."""
    assert parse_flexible_date("12/01/2024") == date(2024, 1, 12)
    assert parse_flexible_date("01/13/2024") is None


def test_parse_date_relative():
    """Relative words resolve against today."""
    today = date.today()

    assert parse_date("today") == today
    assert parse_date("Yesterday") == today - timedelta(days=1)
    assert parse_date("tomorrow") == today + timedelta(days=1)


def test_parse_date_invalid():
    """parse_date raises for text it cannot read."""
    with pytest.raises(ValueError):
        parse_date("not a date")


def test_get_date_range_periods():
    """Report periods map to inclusive, possibly open ranges."""
    today = date.today()

    assert get_date_range("this-month") == (today.replace(day=1), None)
    assert get_date_range("this-year") == (date(today.year, 1, 1), None)
    assert get_date_range("all") == (None, None)

    start, end = get_date_range("last-month")
    assert start.day == 1
    assert end == today.replace(day=1) - timedelta(days=1)
    assert start.month == end.month


def test_get_date_range_unknown_period():
    """Unknown periods raise ValueError."""
    with pytest.raises(ValueError, match="Unknown period"):
        get_date_range("fortnight")
