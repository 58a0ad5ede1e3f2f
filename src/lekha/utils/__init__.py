"""Utility functions for lekha."""

from lekha.utils.date_parser import parse_date, parse_flexible_date
from lekha.utils.amount_parser import parse_loose_number
from lekha.utils.csv_parser import parse_csv

__all__ = [
    "parse_date",
    "parse_flexible_date",
    "parse_loose_number",
    "parse_csv",
]
