"""Dynamic form validation driven by a book's field configuration.

A book's fields are turned into one rule per visible field. Submissions are
flat ``key -> value`` mappings; validation collects every field it can and
reports the rest as per-field errors instead of raising.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from lekha.domain.entities import FieldConfig, FieldType

CHECKBOX_TRUE = ("true", "on", "1")
CHECKBOX_FALSE = ("false", "off", "0", "")

# Submission key -> Transaction attribute
FIXED_COLUMN_KEYS = {
    "amount": "amount",
    "date": "date",
    "description": "description",
    "category": "category_id",
    "category_id": "category_id",
    "party": "party_id",
    "party_id": "party_id",
    "type": "type",
    "payment_mode": "payment_mode",
}


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


@dataclass(frozen=True)
class FieldRule:
    """Validation rule for one visible field."""

    key: str
    label: str
    type: FieldType
    required: bool = False
    min: Optional[float] = None
    max: Optional[float] = None
    regex: Optional[str] = None

    def apply(self, raw: Any) -> tuple[Any, Optional[str]]:
        """Coerce a submitted value.

        Returns:
            Tuple of (value, error). ``error`` is None when the value is valid.
        """
        if self.type == FieldType.NUMBER:
            return self._apply_number(raw)
        if self.type == FieldType.CHECKBOX:
            return self._apply_checkbox(raw)
        if self.type == FieldType.FILE:
            return raw, None
        if self.type == FieldType.DATE:
            if _is_empty(raw):
                return self._empty()
            return raw.isoformat() if hasattr(raw, "isoformat") else str(raw).strip(), None
        return self._apply_text(raw)

    def _empty(self) -> tuple[Any, Optional[str]]:
        if self.required:
            return None, f"{self.label} is required"
        return "", None

    def _apply_number(self, raw: Any) -> tuple[Any, Optional[str]]:
        if _is_empty(raw):
            if self.required:
                return None, f"{self.label} is required"
            return None, None
        try:
            number = float(str(raw).strip())
        except ValueError:
            return None, f"{self.label} must be a number"
        if not math.isfinite(number):
            return None, f"{self.label} must be a number"
        if self.min is not None and number < self.min:
            return None, f"{self.label} must be at least {self.min:g}"
        if self.max is not None and number > self.max:
            return None, f"{self.label} must be at most {self.max:g}"
        return number, None

    def _apply_checkbox(self, raw: Any) -> tuple[Any, Optional[str]]:
        if raw is None or isinstance(raw, bool):
            return bool(raw), None
        text = str(raw).strip().lower()
        if text in CHECKBOX_TRUE:
            return True, None
        if text in CHECKBOX_FALSE:
            return False, None
        return None, f"{self.label} must be true or false"

    def _apply_text(self, raw: Any) -> tuple[Any, Optional[str]]:
        if _is_empty(raw):
            return self._empty()
        value = str(raw)
        if self.type == FieldType.TEXT and self.regex and not re.search(self.regex, value):
            return None, f"{self.label} has an invalid format"
        return value, None


@dataclass
class FormResult:
    """Collected values and per-field errors of one submission."""

    values: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def build_rules(fields: Sequence[FieldConfig]) -> list[FieldRule]:
    """Build one rule per visible field, in display order."""
    rules = []
    for f in sorted(fields, key=lambda item: item.order):
        if not f.visible:
            continue
        validation = f.validation
        rules.append(
            FieldRule(
                key=f.key,
                label=f.label,
                type=f.type,
                required=f.required,
                min=validation.min if validation else None,
                max=validation.max if validation else None,
                regex=validation.regex if validation else None,
            )
        )
    return rules


def validate_submission(fields: Sequence[FieldConfig], data: dict[str, Any]) -> FormResult:
    """Validate a flat submission against a field configuration.

    Invisible fields are neither validated nor collected. Optional fields
    that were left empty are collected as their empty value.

    Args:
        fields: The book's field configuration
        data: Submitted values keyed by field key

    Returns:
        FormResult with coerced values and errors keyed by field key
    """
    result = FormResult()
    for rule in build_rules(fields):
        value, error = rule.apply(data.get(rule.key))
        if error is not None:
            result.errors[rule.key] = error
        elif value is not None or rule.type == FieldType.FILE:
            result.values[rule.key] = value
    return result


def resolve_description_key(fields: Sequence[FieldConfig]) -> Optional[str]:
    """Find the field that plays the description role.

    Tried in order: key "description", key "remark", a label equal to
    "description", a label equal to "remark" (labels compared without case).
    """
    keys = {f.key for f in fields}
    for candidate in ("description", "remark"):
        if candidate in keys:
            return candidate
    for candidate in ("description", "remark"):
        for f in fields:
            if f.label.strip().lower() == candidate:
                return f.key
    return None


def build_transaction_values(
    fields: Sequence[FieldConfig], values: dict[str, Any]
) -> dict[str, Any]:
    """Split collected form values into transaction attributes and custom_data.

    Fixed columns are returned under their Transaction attribute name; every
    other key goes to ``custom_data``. The field resolved as the description
    also fills the ``description`` attribute.
    """
    description_key = resolve_description_key(fields)
    result: dict[str, Any] = {"custom_data": {}}
    for key, value in values.items():
        target = FIXED_COLUMN_KEYS.get(key)
        if target is not None:
            result[target] = value
        else:
            result["custom_data"][key] = value
    if description_key is not None and description_key in values:
        result["description"] = values[description_key]
    return result
