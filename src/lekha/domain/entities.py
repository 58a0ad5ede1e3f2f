"""Domain model entities for lekha.

These are pure data classes representing business concepts, independent of
database schema. Books carry their own transaction schema as an ordered tuple
of FieldConfig entries; transactions keep values for user-defined fields in
``custom_data``.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, date, UTC
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union


class FieldType(str, Enum):
    """Type of a schema field."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    DROPDOWN = "dropdown"
    CHECKBOX = "checkbox"
    FILE = "file"


class TransactionType(str, Enum):
    """Direction of a ledger entry. Amounts are always non-negative."""

    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class AuditAction(str, Enum):
    """Mutation recorded by an audit log entry."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


# Value stored for a custom field, discriminated by Python type
CustomValue = Union[str, float, bool, None]

CORE_FIELD_KEYS = ("amount", "date", "description")


def utc_now() -> datetime:
    """Current UTC time without tzinfo, matching what the store returns."""
    return datetime.now(UTC).replace(tzinfo=None)


@dataclass(frozen=True)
class FieldValidation:
    """Optional constraints for number and text fields."""

    min: Optional[float] = None
    max: Optional[float] = None
    regex: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            key: value
            for key, value in (("min", self.min), ("max", self.max), ("regex", self.regex))
            if value is not None
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["FieldValidation"]:
        if not data:
            return None
        return cls(min=data.get("min"), max=data.get("max"), regex=data.get("regex"))


@dataclass(frozen=True)
class FieldConfig:
    """One entry of a book's transaction schema."""

    key: str
    label: str
    type: FieldType
    visible: bool = True
    required: bool = False
    order: int = 0
    options: tuple[str, ...] = ()
    multiline: bool = False
    validation: Optional[FieldValidation] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "key": self.key,
            "label": self.label,
            "type": self.type.value,
            "visible": self.visible,
            "required": self.required,
            "order": self.order,
        }
        if self.options:
            data["options"] = list(self.options)
        if self.multiline:
            data["multiline"] = True
        if self.validation is not None:
            data["validation"] = self.validation.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FieldConfig":
        return cls(
            key=data["key"],
            label=data.get("label", data["key"]),
            type=FieldType(data.get("type", FieldType.TEXT.value)),
            visible=bool(data.get("visible", True)),
            required=bool(data.get("required", False)),
            order=int(data.get("order", 0)),
            options=tuple(data.get("options") or ()),
            multiline=bool(data.get("multiline", False)),
            validation=FieldValidation.from_dict(data.get("validation")),
        )


@dataclass(frozen=True)
class BookPreferences:
    """Per-book display and entry defaults."""

    date_format: Optional[str] = None
    default_transaction_time: Optional[str] = None
    default_type: Optional[TransactionType] = None
    default_category: Optional[str] = None
    decimal_places: Optional[int] = None
    show_zero_decimals: Optional[bool] = None

    def merged_with(self, other: Optional["BookPreferences"]) -> "BookPreferences":
        """Return a copy with every value set on ``other`` taking precedence."""
        if other is None:
            return self
        overrides = {
            name: value
            for name, value in other.__dict__.items()
            if value is not None
        }
        return replace(self, **overrides)

    def to_dict(self) -> dict[str, Any]:
        data = {}
        for name, value in self.__dict__.items():
            if value is None:
                continue
            data[name] = value.value if isinstance(value, Enum) else value
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["BookPreferences"]:
        if not data:
            return None
        default_type = data.get("default_type")
        return cls(
            date_format=data.get("date_format"),
            default_transaction_time=data.get("default_transaction_time"),
            default_type=TransactionType(default_type) if default_type else None,
            default_category=data.get("default_category"),
            decimal_places=data.get("decimal_places"),
            show_zero_decimals=data.get("show_zero_decimals"),
        )


@dataclass(frozen=True)
class Book:
    """A named ledger with its own transaction schema."""

    id: str
    name: str
    currency: str
    created_at: datetime
    field_config: tuple[FieldConfig, ...] = ()
    primary_amount_field: Optional[str] = None
    preferences: Optional[BookPreferences] = None

    @property
    def amount_field(self) -> str:
        """Key of the field used for dashboard and report totals."""
        return self.primary_amount_field or "amount"

    @property
    def field_keys(self) -> set[str]:
        return {f.key for f in self.field_config}

    def sorted_fields(self) -> list[FieldConfig]:
        return sorted(self.field_config, key=lambda f: f.order)


@dataclass(frozen=True)
class Transaction:
    """Transaction domain entity.

    ``transaction_date`` is the calendar date of the entry. ``recorded_at`` is
    the timestamp it was recorded, or the merged date and time of an imported
    row when the file carried a time column.
    """

    id: str
    book_id: str
    type: TransactionType
    amount: Decimal
    transaction_date: date
    recorded_at: datetime
    description: str
    category_id: str
    party_id: Optional[str] = None
    payment_mode: Optional[str] = None
    tags: tuple[str, ...] = ()
    attachments: tuple[str, ...] = ()
    custom_data: dict[str, CustomValue] = field(default_factory=dict)
    created_by: Optional[str] = None


@dataclass(frozen=True)
class FieldTemplate:
    """Reusable field configuration and preferences bundle."""

    id: str
    name: str
    description: str
    field_config: tuple[FieldConfig, ...]
    created_at: datetime
    preferences: Optional[BookPreferences] = None
    is_default: bool = False


@dataclass(frozen=True)
class AuditChange:
    """Single field-level change inside an audit entry."""

    field: str
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class AuditLog:
    """Immutable record of one transaction mutation."""

    id: str
    book_id: str
    transaction_id: str
    action: AuditAction
    changes: tuple[AuditChange, ...]
    performed_by: str
    timestamp: datetime


@dataclass(frozen=True)
class CashFlowSummary:
    """Income, expense and net over a set of transactions."""

    income: float
    expense: float

    @property
    def net(self) -> float:
        return self.income - self.expense


@dataclass(frozen=True)
class CategoryShare:
    """Expense total of one category and its share of all expenses."""

    category: str
    amount: float
    percentage: float


@dataclass(frozen=True)
class MonthlyTotals:
    """Income and expense for one ``YYYY-MM`` bucket.

    ``income_ratio`` and ``expense_ratio`` are scaled to the largest value
    across every month and both types.
    """

    month: str
    income: float
    expense: float
    income_ratio: float
    expense_ratio: float


@dataclass(frozen=True)
class PartyBalance:
    """Amounts paid to and received from one party."""

    party: str
    paid: float
    received: float


@dataclass(frozen=True)
class CustomGroup:
    """Raw amount total and entry count for one value of a grouping field."""

    value: str
    amount: float
    count: int
