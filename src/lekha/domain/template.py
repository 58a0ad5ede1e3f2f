"""Field template domain service."""

import uuid
from dataclasses import replace
from typing import Optional, Sequence

from lekha.database.base import Database
from lekha.domain.entities import (
    BookPreferences,
    FieldConfig,
    FieldTemplate,
    FieldType,
    TransactionType,
    utc_now,
)
from lekha.domain.errors import (
    NotFoundError,
    ValidationError,
    book_not_found,
    default_template_immutable,
    template_not_found,
)
from lekha.domain.schema import DEFAULT_FIELD_CONFIG, normalize_order


def _system_template(
    template_id: str,
    name: str,
    description: str,
    fields: Sequence[FieldConfig],
    preferences: Optional[BookPreferences] = None,
) -> FieldTemplate:
    return FieldTemplate(
        id=template_id,
        name=name,
        description=description,
        field_config=tuple(normalize_order(fields)),
        created_at=utc_now(),
        preferences=preferences,
        is_default=True,
    )


def default_templates() -> list[FieldTemplate]:
    """System templates seeded into every database."""
    return [
        _system_template(
            "system-personal",
            "Personal Finance",
            "Everyday income and expenses with category and party.",
            DEFAULT_FIELD_CONFIG,
            BookPreferences(default_type=TransactionType.EXPENSE),
        ),
        _system_template(
            "system-cashbook",
            "Simple Cashbook",
            "Amount, date, description and type only.",
            [f for f in DEFAULT_FIELD_CONFIG if f.key in ("amount", "date", "description", "type")],
        ),
        _system_template(
            "system-business",
            "Business Ledger",
            "Invoices and payments with payment mode and reference.",
            [
                *DEFAULT_FIELD_CONFIG,
                FieldConfig(
                    key="payment_mode",
                    label="Payment Mode",
                    type=FieldType.DROPDOWN,
                    order=7,
                    options=("Cash", "Bank Transfer", "Card", "UPI", "Cheque"),
                ),
                FieldConfig(
                    key="invoice_number", label="Invoice Number", type=FieldType.TEXT, order=8
                ),
                FieldConfig(
                    key="notes", label="Notes", type=FieldType.TEXT, order=9, multiline=True
                ),
            ],
            BookPreferences(
                default_type=TransactionType.INCOME, decimal_places=2, show_zero_decimals=True
            ),
        ),
    ]


class TemplateService:
    """Service for managing field templates."""

    def __init__(self, db: Database):
        """Initialize template service.

        Args:
            db: Database instance
        """
        self.db = db

    def ensure_default_templates(self) -> None:
        """Seed system templates that are missing. Existing ones are left alone."""
        for template in default_templates():
            if self.db.get_template(template.id) is None:
                self.db.add_template(template)

    def _require_mutable(self, template_id: str) -> FieldTemplate:
        template = self.db.get_template(template_id)
        if template is None:
            raise NotFoundError(template_not_found(template_id))
        if template.is_default:
            raise ValidationError(default_template_immutable(template.name))
        return template

    def create_template(
        self,
        name: str,
        description: str = "",
        field_config: Sequence[FieldConfig] = DEFAULT_FIELD_CONFIG,
        preferences: Optional[BookPreferences] = None,
    ) -> FieldTemplate:
        """Create a user template.

        Raises:
            ValidationError: If name is empty
        """
        name = name.strip()
        if not name:
            raise ValidationError("Template name cannot be empty")
        template = FieldTemplate(
            id=uuid.uuid4().hex,
            name=name,
            description=description,
            field_config=tuple(normalize_order(field_config)),
            created_at=utc_now(),
            preferences=preferences,
        )
        self.db.add_template(template)
        return template

    def save_book_as_template(
        self, book_id: str, name: str, description: str = ""
    ) -> FieldTemplate:
        """Create a template from a book's fields and preferences.

        Raises:
            NotFoundError: If the book doesn't exist
        """
        book = self.db.get_book(book_id)
        if book is None:
            raise NotFoundError(book_not_found(book_id))
        return self.create_template(name, description, book.field_config, book.preferences)

    def list_templates(self) -> list[FieldTemplate]:
        """List all templates, system defaults first."""
        return self.db.list_templates()

    def get_template(self, template_id: str) -> Optional[FieldTemplate]:
        """Get template by ID."""
        return self.db.get_template(template_id)

    def resolve_template(self, name_or_id: str) -> FieldTemplate:
        """Find a template by id, then by case-insensitive name."""
        template = self.db.get_template(name_or_id)
        if template is not None:
            return template
        wanted = name_or_id.strip().lower()
        for template in self.db.list_templates():
            if template.name.lower() == wanted:
                return template
        raise NotFoundError(template_not_found(name_or_id))

    def update_template(
        self,
        template_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        field_config: Optional[Sequence[FieldConfig]] = None,
        preferences: Optional[BookPreferences] = None,
    ) -> FieldTemplate:
        """Update a user template.

        Raises:
            NotFoundError: If the template doesn't exist
            ValidationError: If the template is a system default
        """
        template = self._require_mutable(template_id)
        changes = {}
        if name is not None:
            if not name.strip():
                raise ValidationError("Template name cannot be empty")
            changes["name"] = name.strip()
        if description is not None:
            changes["description"] = description
        if field_config is not None:
            changes["field_config"] = tuple(normalize_order(field_config))
        if preferences is not None:
            changes["preferences"] = preferences
        updated = replace(template, **changes)
        self.db.put_template(updated)
        return updated

    def delete_template(self, template_id: str) -> None:
        """Delete a user template.

        Raises:
            NotFoundError: If the template doesn't exist
            ValidationError: If the template is a system default
        """
        self._require_mutable(template_id)
        self.db.delete_template(template_id)
