"""Custom field values and their storage-boundary validation."""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from lekha.domain.entities import CustomValue, FieldConfig, FieldType
from lekha.domain.errors import ValidationError
from lekha.utils.amount_parser import parse_loose_number

CENT = Decimal("0.01")


def round_amount(amount: Decimal) -> Decimal:
    """Round an amount to the two decimal places the store keeps."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def is_custom_value(value: Any) -> bool:
    """Check that a value is one of the CustomValue variants."""
    if value is None or isinstance(value, (str, bool)):
        return True
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    return False


def normalize_custom_value(value: Any) -> CustomValue:
    """Return the CustomValue form of a scalar.

    Integers become floats so that numbers have a single representation.

    Raises:
        ValidationError: If the value is not a supported scalar
    """
    if not is_custom_value(value):
        raise ValidationError(f"Unsupported custom value {value!r}")
    if isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    return value


def validate_custom_data(custom_data: dict[str, Any]) -> dict[str, CustomValue]:
    """Validate and normalize a custom_data mapping before it is stored.

    Raises:
        ValidationError: If a key is not a string or a value is not a scalar
    """
    result: dict[str, CustomValue] = {}
    for key, value in custom_data.items():
        if not isinstance(key, str) or not key:
            raise ValidationError(f"Invalid custom field key {key!r}")
        try:
            result[key] = normalize_custom_value(value)
        except ValidationError:
            raise ValidationError(
                f"Unsupported value for custom field '{key}': {value!r}"
            ) from None
    return result


def find_unknown_custom_keys(
    custom_data: dict[str, CustomValue], fields: Iterable[FieldConfig]
) -> list[str]:
    """Return custom_data keys that have no matching field in the schema."""
    known = {f.key for f in fields}
    return sorted(key for key in custom_data if key not in known)


def value_for_field_type(field_type: FieldType, raw: str) -> CustomValue:
    """Convert an imported string into the CustomValue for a field type."""
    if field_type == FieldType.NUMBER:
        return parse_loose_number(raw) or 0.0
    if field_type == FieldType.CHECKBOX:
        return raw.strip().lower() in ("true", "yes", "1", "on", "y")
    return raw
