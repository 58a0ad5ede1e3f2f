"""Book domain service."""

import logging
import uuid
from dataclasses import replace
from typing import Optional, Sequence

from lekha.database.base import Database
from lekha.domain.entities import (
    Book as BookEntity,
    BookPreferences,
    FieldConfig,
    utc_now,
)
from lekha.domain.errors import (
    NotFoundError,
    ValidationError,
    book_name_not_found,
    book_not_found,
    template_not_found,
)
from lekha.domain.schema import DEFAULT_FIELD_CONFIG, normalize_order

logger = logging.getLogger(__name__)

_UNSET = object()


def check_unique_keys(fields: Sequence[FieldConfig]) -> None:
    """Raise ValidationError if two fields share a key."""
    seen = set()
    for f in fields:
        if f.key in seen:
            raise ValidationError(f"Duplicate field key '{f.key}'")
        seen.add(f.key)


class BookService:
    """Service for managing books and their field schemas."""

    def __init__(self, db: Database):
        """Initialize book service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_book(
        self,
        name: str,
        currency: str = "INR",
        template_id: Optional[str] = None,
        field_config: Optional[Sequence[FieldConfig]] = None,
    ) -> BookEntity:
        """Create a new book.

        Args:
            name: Book name
            currency: ISO code or symbol, stored as given
            template_id: Optional template to seed fields and preferences from
            field_config: Optional explicit field configuration; ignored when a
                template is given

        Returns:
            The created book

        Raises:
            ValidationError: If name is empty or field keys collide
            NotFoundError: If the template doesn't exist
        """
        name = name.strip()
        if not name:
            raise ValidationError("Book name cannot be empty")

        preferences = None
        fields = list(field_config) if field_config is not None else list(DEFAULT_FIELD_CONFIG)
        if template_id is not None:
            template = self.db.get_template(template_id)
            if template is None:
                raise NotFoundError(template_not_found(template_id))
            fields = list(template.field_config)
            preferences = template.preferences

        fields = normalize_order(fields)
        check_unique_keys(fields)
        book = BookEntity(
            id=uuid.uuid4().hex,
            name=name,
            currency=currency.strip(),
            created_at=utc_now(),
            field_config=tuple(fields),
            preferences=preferences,
        )
        self.db.add_book(book)
        logger.info("Created book %s (%s)", book.name, book.id)
        return book

    def get_book(self, book_id: str) -> Optional[BookEntity]:
        """Get book by ID."""
        return self.db.get_book(book_id)

    def require_book(self, book_id: str) -> BookEntity:
        """Get book by ID or raise NotFoundError."""
        book = self.db.get_book(book_id)
        if book is None:
            raise NotFoundError(book_not_found(book_id))
        return book

    def list_books(self) -> list[BookEntity]:
        """List all books."""
        return self.db.list_books()

    def resolve_book(self, name_or_id: str) -> BookEntity:
        """Find a book by id, then by case-insensitive name.

        Raises:
            NotFoundError: If nothing matches
            ValidationError: If more than one book has the name
        """
        book = self.db.get_book(name_or_id)
        if book is not None:
            return book
        wanted = name_or_id.strip().lower()
        matches = [b for b in self.db.list_books() if b.name.lower() == wanted]
        if not matches:
            raise NotFoundError(book_name_not_found(name_or_id))
        if len(matches) > 1:
            raise ValidationError(
                f"More than one book is named '{name_or_id}'; use the book id instead"
            )
        return matches[0]

    def rename_book(self, book_id: str, name: str) -> BookEntity:
        """Rename a book.

        Raises:
            NotFoundError: If the book doesn't exist
            ValidationError: If name is empty
        """
        book = self.require_book(book_id)
        name = name.strip()
        if not name:
            raise ValidationError("Book name cannot be empty")
        updated = replace(book, name=name)
        self.db.put_book(updated)
        return updated

    def update_book(
        self,
        book_id: str,
        currency: Optional[str] = None,
        primary_amount_field=_UNSET,
        preferences: Optional[BookPreferences] = None,
    ) -> BookEntity:
        """Update book settings.

        Args:
            book_id: Book ID
            currency: New currency, if given
            primary_amount_field: Key of a field in the book, or None to fall
                back to the built-in amount
            preferences: Preferences overlaid on the current ones

        Raises:
            NotFoundError: If the book doesn't exist
            ValidationError: If primary_amount_field is not a field of the book
        """
        book = self.require_book(book_id)
        changes = {}
        if currency is not None:
            changes["currency"] = currency.strip()
        if primary_amount_field is not _UNSET:
            if primary_amount_field is not None and primary_amount_field not in book.field_keys:
                raise ValidationError(
                    f"Field '{primary_amount_field}' is not part of book '{book.name}'"
                )
            changes["primary_amount_field"] = primary_amount_field
        if preferences is not None:
            current = book.preferences or BookPreferences()
            changes["preferences"] = current.merged_with(preferences)
        updated = replace(book, **changes)
        self.db.put_book(updated)
        return updated

    def save_fields(self, book_id: str, fields: Sequence[FieldConfig]) -> BookEntity:
        """Persist a book's field configuration with a dense order.

        Raises:
            NotFoundError: If the book doesn't exist
            ValidationError: If two fields share a key
        """
        book = self.require_book(book_id)
        normalized = normalize_order(fields)
        check_unique_keys(normalized)
        updated = replace(book, field_config=tuple(normalized))
        self.db.put_book(updated)
        return updated

    def apply_template(self, book_id: str, template_id: str) -> BookEntity:
        """Replace a book's fields with a template's and merge its preferences.

        Existing transactions are left as they are.

        Raises:
            NotFoundError: If the book or template doesn't exist
        """
        book = self.require_book(book_id)
        template = self.db.get_template(template_id)
        if template is None:
            raise NotFoundError(template_not_found(template_id))

        preferences = book.preferences
        if template.preferences is not None:
            preferences = (preferences or BookPreferences()).merged_with(template.preferences)
        fields = tuple(normalize_order(template.field_config))
        primary = book.primary_amount_field
        if primary is not None and primary not in {f.key for f in fields}:
            primary = None
        updated = replace(
            book,
            field_config=fields,
            primary_amount_field=primary,
            preferences=preferences,
        )
        self.db.put_book(updated)
        logger.info("Applied template %s to book %s", template.name, book.id)
        return updated

    def delete_book(self, book_id: str) -> None:
        """Delete a book record. Its transactions and audit logs are kept.

        Raises:
            NotFoundError: If the book doesn't exist
        """
        book = self.require_book(book_id)
        self.db.delete_book(book_id)
        logger.info("Deleted book %s (%s)", book.name, book.id)
