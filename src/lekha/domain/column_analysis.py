"""Column type inference and mapping suggestions for CSV import.

Everything here is a pure function of the parsed rows and headers, so the
heuristics can be tested without touching storage.
"""

import re
from dataclasses import dataclass
from typing import Sequence

from lekha.domain.entities import FieldConfig, FieldType
from lekha.utils.amount_parser import parse_loose_number
from lekha.utils.date_parser import parse_flexible_date

# Distinct values kept per column
MAX_UNIQUE_VALUES = 100
# A text column with at most this many distinct values may become a dropdown...
DROPDOWN_MAX_UNIQUE = 20
# ...but only when the file has more data rows than this
DROPDOWN_MIN_ROWS = 20

NUMBER_HEADER_KEYWORDS = ("amount", "debit", "credit", "balance", "cost", "price")
TEXT_HEADER_KEYWORDS = ("description", "remark", "narration")

# Mapping targets for import into an existing book
TARGET_DATE = "date"
TARGET_TIME = "time"
TARGET_AMOUNT_IN = "amount_in"
TARGET_AMOUNT_OUT = "amount_out"
TARGET_AMOUNT_NET = "amount_net"
TARGET_DESCRIPTION = "description"
TARGET_CATEGORY = "category"
TARGET_MODE = "mode"
TARGET_PARTY = "party"
TARGET_IGNORE = "ignore"
TARGET_CREATE_NEW = "create_new"

SYSTEM_TARGETS = (
    TARGET_DATE,
    TARGET_TIME,
    TARGET_AMOUNT_IN,
    TARGET_AMOUNT_OUT,
    TARGET_AMOUNT_NET,
    TARGET_DESCRIPTION,
    TARGET_CATEGORY,
    TARGET_MODE,
    TARGET_PARTY,
    TARGET_IGNORE,
    TARGET_CREATE_NEW,
)

# Field keys stored as Transaction attributes; never matched as custom targets
FIXED_FIELD_KEYS = frozenset(
    ("amount", "date", "description", "category", "category_id", "party", "party_id",
     "type", "payment_mode")
)

# (keywords, target), first match wins
_HEADER_TARGET_RULES = (
    (("date",), TARGET_DATE),
    (("time",), TARGET_TIME),
    (("remark", "desc", "narration"), TARGET_DESCRIPTION),
    (("category",), TARGET_CATEGORY),
    (("party", "payee"), TARGET_PARTY),
    (("mode", "type"), TARGET_MODE),
    (("credit", "deposit", "in"), TARGET_AMOUNT_IN),
    (("debit", "withdrawal", "out"), TARGET_AMOUNT_OUT),
    (("amount", "balance"), TARGET_AMOUNT_NET),
)


@dataclass(frozen=True)
class ColumnAnalysis:
    """Statistical classification of one CSV column."""

    type: FieldType
    unique_values: tuple[str, ...]
    has_empty: bool


def analyze_column_data(rows: Sequence[Sequence[str]], column_index: int) -> ColumnAnalysis:
    """Classify a column as date, number or text.

    The first row is the header and is skipped. A column is a date column
    when every non-empty value parses as a flexible date, otherwise a number
    column when every non-empty value parses as a number once non-numeric
    characters are stripped. A column with no values at all is text.

    Args:
        rows: Parsed CSV rows including the header
        column_index: Column to analyse

    Returns:
        ColumnAnalysis with at most MAX_UNIQUE_VALUES distinct values
    """
    is_number = True
    is_date = True
    seen_value = False
    unique_values: dict[str, None] = {}
    has_empty = False

    for row in rows[1:]:
        value = row[column_index].strip() if column_index < len(row) else ""
        if not value:
            has_empty = True
            continue
        seen_value = True

        if len(unique_values) < MAX_UNIQUE_VALUES:
            unique_values[value] = None

        if is_number and parse_loose_number(value) is None:
            is_number = False
        if is_date and parse_flexible_date(value) is None:
            is_date = False

        if not is_number and not is_date and len(unique_values) >= MAX_UNIQUE_VALUES:
            break

    column_type = FieldType.TEXT
    if seen_value and is_date:
        column_type = FieldType.DATE
    elif seen_value and is_number:
        column_type = FieldType.NUMBER

    return ColumnAnalysis(
        type=column_type,
        unique_values=tuple(unique_values),
        has_empty=has_empty,
    )


def infer_field_type(
    header: str, analysis: ColumnAnalysis, total_rows: int
) -> tuple[FieldType, tuple[str, ...]]:
    """Decide the field type for a column of a new book.

    Header keywords override the statistics: description-like headers are
    text, amount-like headers are numbers (the latter wins when both match).
    Any other text column with few distinct values in a large enough file
    becomes a dropdown whose options are those values; description-like
    headers never do.

    Args:
        header: Column header
        analysis: Result of analyze_column_data for the column
        total_rows: Number of data rows in the file

    Returns:
        Tuple of (field type, dropdown options)
    """
    lowered = header.lower()
    field_type = analysis.type
    forced_text = any(word in lowered for word in TEXT_HEADER_KEYWORDS)
    if forced_text:
        field_type = FieldType.TEXT
    if any(word in lowered for word in NUMBER_HEADER_KEYWORDS):
        field_type = FieldType.NUMBER

    if (
        field_type == FieldType.TEXT
        and not forced_text
        and analysis.unique_values
        and len(analysis.unique_values) <= DROPDOWN_MAX_UNIQUE
        and total_rows > DROPDOWN_MIN_ROWS
    ):
        return FieldType.DROPDOWN, analysis.unique_values
    return field_type, ()


def field_key_from_header(header: str) -> str:
    """Lower-case a header and replace anything outside [a-z0-9] with '_'."""
    return re.sub(r"[^a-z0-9]", "_", header.lower())


def suggest_target(header: str, fields: Sequence[FieldConfig]) -> str:
    """Guess the mapping target of a column when importing into a book.

    System targets are guessed from header keywords; a custom field of the
    book whose label appears in the header takes precedence.
    """
    lowered = header.lower().strip()
    target = TARGET_IGNORE
    for keywords, candidate in _HEADER_TARGET_RULES:
        if any(word in lowered for word in keywords):
            target = candidate
            break

    for f in fields:
        label = f.label.lower()
        if f.key not in FIXED_FIELD_KEYS and label and label in lowered:
            return f.key
    return target
