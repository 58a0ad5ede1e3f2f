"""Tests for CSV column inference and mapping suggestions."""

from lekha.domain.column_analysis import (
    TARGET_AMOUNT_IN,
    TARGET_AMOUNT_NET,
    TARGET_AMOUNT_OUT,
    TARGET_DATE,
    TARGET_DESCRIPTION,
    TARGET_IGNORE,
    analyze_column_data,
    field_key_from_header,
    infer_field_type,
    suggest_target,
)
from lekha.domain.entities import FieldConfig, FieldType

WORDS = (
    "alpha", "bravo", "charlie", "delta", "echo", "foxtrot", "golf", "hotel",
    "india", "juliet", "kilo", "lima", "mike", "november", "oscar",
    "papa", "quebec", "romeo", "sierra", "tango", "uniform", "victor",
)


def _rows(header, values):
    return [[header]] + [[v] for v in values]


def test_date_column():
    """Columns where every value is a date are dates."""
    analysis = analyze_column_data(_rows("When", ["2024-01-01", "8-May-25", "31/12/2023"]), 0)

    assert analysis.type == FieldType.DATE


def test_number_column_with_empties():
    """Numbers may carry symbols; empty cells are noted, not counted."""
    analysis = analyze_column_data(_rows("Paid", ["₹ 1,200", "", "300"]), 0)

    assert analysis.type == FieldType.NUMBER
    assert analysis.has_empty
    assert analysis.unique_values == ("₹ 1,200", "300")


def test_empty_column_is_text():
    """A column with no values is text."""
    analysis = analyze_column_data(_rows("Notes", ["", " ", ""]), 0)

    assert analysis.type == FieldType.TEXT
    assert analysis.unique_values == ()


def test_short_rows_are_treated_as_empty():
    """Rows without the column count as empty cells."""
    rows = [["A", "B"], ["1"], ["2", "x"]]

    analysis = analyze_column_data(rows, 1)

    assert analysis.has_empty
    assert analysis.unique_values == ("x",)


def test_many_rows_few_values_become_dropdown():
    """25 rows with 15 distinct values give a dropdown of those values."""
    values = [WORDS[i % 15] for i in range(25)]
    analysis = analyze_column_data(_rows("Vendor", values), 0)

    field_type, options = infer_field_type("Vendor", analysis, total_rows=25)

    assert field_type == FieldType.DROPDOWN
    assert options == WORDS[:15]


def test_few_rows_stay_text():
    """10 rows with 8 distinct values stay text."""
    values = [WORDS[i % 8] for i in range(10)]
    analysis = analyze_column_data(_rows("Vendor", values), 0)

    assert infer_field_type("Vendor", analysis, total_rows=10) == (FieldType.TEXT, ())


def test_too_many_distinct_values_stay_text():
    """More than 20 distinct values is free text."""
    values = [WORDS[i % 22] for i in range(30)]
    analysis = analyze_column_data(_rows("Vendor", values), 0)

    assert infer_field_type("Vendor", analysis, total_rows=30)[0] == FieldType.TEXT


def test_header_keywords_override_statistics():
    """Amount-like headers are numbers, description-like headers text."""
    text = analyze_column_data(_rows("x", ["abc", "def"]), 0)
    number = analyze_column_data(_rows("x", ["1", "2"]), 0)

    assert infer_field_type("Debit", text, total_rows=2)[0] == FieldType.NUMBER
    assert infer_field_type("Narration", number, total_rows=2)[0] == FieldType.TEXT
    assert infer_field_type("Amount Description", text, total_rows=2)[0] == FieldType.NUMBER


def test_description_header_never_becomes_dropdown():
    """A narration column with few distinct values stays text."""
    values = [WORDS[i % 15] for i in range(25)]
    analysis = analyze_column_data(_rows("Description", values), 0)

    assert infer_field_type("Description", analysis, total_rows=25) == (FieldType.TEXT, ())
    assert infer_field_type("Bank Narration", analysis, total_rows=25) == (FieldType.TEXT, ())


def test_field_key_from_header():
    """Keys are lower case with other characters replaced."""
    assert field_key_from_header("Txn Date!") == "txn_date_"
    assert field_key_from_header("GST%") == "gst_"


def test_suggest_target_from_keywords():
    """Headers are matched to system targets by keyword."""
    assert suggest_target("Credit", []) == TARGET_AMOUNT_IN
    assert suggest_target("Withdrawal Amt", []) == TARGET_AMOUNT_OUT
    assert suggest_target("Txn Date", []) == TARGET_DATE
    assert suggest_target("Narration", []) == TARGET_DESCRIPTION
    assert suggest_target("Balance", []) == TARGET_AMOUNT_NET
    assert suggest_target("Reference", []) == TARGET_IGNORE


def test_suggest_target_prefers_custom_label():
    """A custom field whose label is in the header wins."""
    fields = [
        FieldConfig(key="invoice_no", label="Invoice", type=FieldType.TEXT),
        FieldConfig(key="description", label="Description", type=FieldType.TEXT),
    ]

    assert suggest_target("Invoice Number", fields) == "invoice_no"
    assert suggest_target("Description", fields) == TARGET_DESCRIPTION
