"""Book schema editing.

All operations take a field list and return a new one; inputs are never
mutated. Invalid edits are no-ops and never raise. When an edit is refused
for a reason the user should see, the message is returned next to the
unchanged list.
"""

import uuid
from dataclasses import dataclass, replace
from typing import Any, Optional, Sequence

from lekha.domain.entities import CORE_FIELD_KEYS, FieldConfig, FieldType

CORE_FIELD_DELETE_MESSAGE = "Cannot delete core system fields."
CORE_FIELD_TYPE_MESSAGE = "Cannot change the type of core system fields."

DEFAULT_FIELD_CONFIG = (
    FieldConfig(key="amount", label="Amount", type=FieldType.NUMBER, required=True, order=1),
    FieldConfig(key="date", label="Date", type=FieldType.DATE, required=True, order=2),
    FieldConfig(
        key="description", label="Description", type=FieldType.TEXT, required=True, order=3
    ),
    FieldConfig(
        key="category_id",
        label="Category",
        type=FieldType.DROPDOWN,
        required=True,
        order=4,
        options=("Food", "Transport", "Utilities", "Salary", "Other"),
    ),
    FieldConfig(
        key="type",
        label="Type",
        type=FieldType.DROPDOWN,
        required=True,
        order=5,
        options=("income", "expense", "transfer"),
    ),
    FieldConfig(key="party", label="Party", type=FieldType.TEXT, required=False, order=6),
)


@dataclass(frozen=True)
class SchemaEditResult:
    """Outcome of an edit that may be refused."""

    fields: list[FieldConfig]
    message: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.message is None


def generate_field_key() -> str:
    """Return a new field key that will not collide with existing ones."""
    return f"field_{uuid.uuid4().hex}"


def normalize_order(fields: Sequence[FieldConfig]) -> list[FieldConfig]:
    """Sort by current order and renumber as a dense 1..N sequence.

    Fields with equal order keep their list position relative to each other.
    """
    ordered = sorted(enumerate(fields), key=lambda pair: (pair[1].order, pair[0]))
    return [replace(f, order=i + 1) for i, (_, f) in enumerate(ordered)]


def renumber(fields: Sequence[FieldConfig]) -> list[FieldConfig]:
    """Assign order from list position without re-sorting."""
    return [replace(f, order=i + 1) for i, f in enumerate(fields)]


def add_field(
    fields: Sequence[FieldConfig],
    label: str = "New Field",
    field_type: FieldType = FieldType.TEXT,
    **attributes: Any,
) -> list[FieldConfig]:
    """Append a new field with a fresh key at the end of the schema."""
    new_field = FieldConfig(
        key=attributes.pop("key", None) or generate_field_key(),
        label=label,
        type=field_type,
        order=len(fields) + 1,
        **attributes,
    )
    return [*fields, new_field]


def move_field(fields: Sequence[FieldConfig], index: int, direction: str) -> list[FieldConfig]:
    """Swap the field at ``index`` with its neighbour.

    Args:
        fields: Fields in display order
        index: Position of the field to move
        direction: "up" or "down"

    Returns:
        Renumbered list; unchanged when the move would leave the list
    """
    result = list(fields)
    if direction not in ("up", "down") or not 0 <= index < len(result):
        return result
    target = index - 1 if direction == "up" else index + 1
    if not 0 <= target < len(result):
        return result

    result[index], result[target] = result[target], result[index]
    return renumber(result)


def delete_field(
    fields: Sequence[FieldConfig], index: int, protect_core: bool = True
) -> SchemaEditResult:
    """Remove the field at ``index``.

    Core fields (amount, date, description) are kept when ``protect_core`` is
    set; the result then carries a message and the original list.
    """
    current = list(fields)
    if not 0 <= index < len(current):
        return SchemaEditResult(current)
    if protect_core and current[index].key in CORE_FIELD_KEYS:
        return SchemaEditResult(current, CORE_FIELD_DELETE_MESSAGE)
    return SchemaEditResult(renumber(current[:index] + current[index + 1:]))


def update_field(
    fields: Sequence[FieldConfig], index: int, protect_core: bool = True, **changes: Any
) -> SchemaEditResult:
    """Replace attributes of the field at ``index``.

    The key cannot be changed. A core field keeps its type under protection.
    """
    current = list(fields)
    if not 0 <= index < len(current):
        return SchemaEditResult(current)
    changes.pop("key", None)
    target = current[index]
    new_type = changes.get("type")
    if (
        protect_core
        and target.key in CORE_FIELD_KEYS
        and new_type is not None
        and FieldType(new_type) != target.type
    ):
        return SchemaEditResult(current, CORE_FIELD_TYPE_MESSAGE)
    if new_type is not None:
        changes["type"] = FieldType(new_type)
    if "options" in changes:
        changes["options"] = tuple(changes["options"] or ())
    current[index] = replace(target, **changes)
    return SchemaEditResult(current)


def find_field_index(fields: Sequence[FieldConfig], key_or_label: str) -> int:
    """Return the position of a field by key, then by case-insensitive label, or -1."""
    for i, f in enumerate(fields):
        if f.key == key_or_label:
            return i
    lowered = key_or_label.lower()
    for i, f in enumerate(fields):
        if f.label.lower() == lowered:
            return i
    return -1
