"""Tests for custom value validation."""

import pytest

from lekha.domain.entities import FieldConfig, FieldType
from lekha.domain.errors import ValidationError
from lekha.domain.values import (
    find_unknown_custom_keys,
    normalize_custom_value,
    validate_custom_data,
    value_for_field_type,
)


def test_normalize_scalars():
    """Supported scalars pass through; integers become floats."""
    assert normalize_custom_value("x") == "x"
    assert normalize_custom_value(True) is True
    assert normalize_custom_value(None) is None
    assert normalize_custom_value(3) == 3.0
    assert isinstance(normalize_custom_value(3), float)


@pytest.mark.parametrize("value", [[1], {"a": 1}, float("nan"), float("inf"), object()])
def test_normalize_rejects_other_values(value):
    """Lists, dicts and non-finite numbers are not custom values."""
    with pytest.raises(ValidationError):
        normalize_custom_value(value)


def test_validate_custom_data_names_the_key():
    """The error names the offending field."""
    with pytest.raises(ValidationError, match="invoice"):
        validate_custom_data({"ok": 1, "invoice": ["A", "B"]})


def test_validate_custom_data_rejects_empty_key():
    """Keys must be non-empty strings."""
    with pytest.raises(ValidationError):
        validate_custom_data({"": "x"})


def test_find_unknown_custom_keys():
    """Keys without a schema field are reported, sorted."""
    fields = [FieldConfig(key="invoice", label="Invoice", type=FieldType.TEXT)]

    assert find_unknown_custom_keys({"zeta": 1, "invoice": "A", "alpha": None}, fields) == [
        "alpha",
        "zeta",
    ]


def test_value_for_field_type():
    """Imported strings are converted by the target field type."""
    assert value_for_field_type(FieldType.NUMBER, "₹ 50") == 50.0
    assert value_for_field_type(FieldType.NUMBER, "n/a") == 0.0
    assert value_for_field_type(FieldType.CHECKBOX, "Yes") is True
    assert value_for_field_type(FieldType.CHECKBOX, "no") is False
    assert value_for_field_type(FieldType.TEXT, "hello") == "hello"
