"""Transaction domain service."""

import logging
import uuid
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from lekha.database.base import Database
from lekha.domain.audit import build_audit_log, diff_transactions, to_json_value
from lekha.domain.entities import (
    AuditAction,
    AuditLog,
    Book,
    Transaction as TransactionEntity,
    TransactionType,
    utc_now,
)
from lekha.domain.errors import (
    FormValidationError,
    NotFoundError,
    ValidationError,
    book_not_found,
    transaction_not_found,
)
from lekha.domain.form import build_transaction_values, validate_submission
from lekha.domain.values import find_unknown_custom_keys, round_amount, validate_custom_data
from lekha.utils.date_parser import parse_date

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Uncategorized"


def _to_amount(value: Any) -> Decimal:
    """Convert a submitted amount to a non-negative Decimal."""
    if value is None or value == "":
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"Invalid amount '{value}'") from None
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount '{value}'")
    if amount < 0:
        raise ValidationError("amount must be non-negative")
    return round_amount(amount)


def _to_type(value: Any) -> TransactionType:
    try:
        return TransactionType(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            f"Invalid transaction type '{value}'. "
            f"Use one of: {', '.join(t.value for t in TransactionType)}"
        ) from None


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parse_date(str(value))
    except ValueError as e:
        raise ValidationError(str(e)) from e


def _search_text(txn: TransactionEntity) -> str:
    parts = [txn.description, txn.category_id, txn.party_id or "", txn.payment_mode or ""]
    parts.extend(str(v) for v in txn.custom_data.values() if v is not None)
    parts.extend(txn.tags)
    return " ".join(parts).lower()


def form_defaults(txn: TransactionEntity) -> dict[str, Any]:
    """Values that prefill an edit form for ``txn``, keyed by field key."""
    return {
        "type": txn.type.value,
        "amount": str(txn.amount),
        "date": txn.transaction_date.isoformat(),
        "description": txn.description,
        "category": txn.category_id,
        "category_id": txn.category_id,
        "party": txn.party_id or "",
        "party_id": txn.party_id or "",
        "payment_mode": txn.payment_mode or "",
        **txn.custom_data,
    }


class TransactionService:
    """Service for managing transactions.

    Every write goes through the audit trail: the store commits the
    transaction change and its audit entry together.
    """

    def __init__(self, db: Database, performed_by: Optional[str] = None):
        """Initialize transaction service.

        Args:
            db: Database instance
            performed_by: Name recorded on audit entries and as creator
        """
        self.db = db
        self.performed_by = performed_by

    def _require_book(self, book_id: str) -> Book:
        book = self.db.get_book(book_id)
        if book is None:
            raise NotFoundError(book_not_found(book_id))
        return book

    def require_transaction(self, transaction_id: str) -> TransactionEntity:
        """Get a transaction or raise NotFoundError."""
        txn = self.db.get_transaction(transaction_id)
        if txn is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return txn

    def create_transaction(
        self,
        book_id: str,
        amount: Decimal,
        transaction_date: date,
        description: str = "",
        type: TransactionType = TransactionType.EXPENSE,
        category_id: Optional[str] = None,
        party_id: Optional[str] = None,
        payment_mode: Optional[str] = None,
        tags: tuple[str, ...] = (),
        attachments: tuple[str, ...] = (),
        custom_data: Optional[dict[str, Any]] = None,
        recorded_at: Optional[datetime] = None,
    ) -> TransactionEntity:
        """Create a transaction and log it.

        Args:
            book_id: Owning book
            amount: Non-negative amount; the sign is implied by ``type``
            transaction_date: Calendar date of the entry
            description: Free text description
            type: Income, expense or transfer
            category_id: Category; defaults to the book preference, then
                "Uncategorized"
            party_id: Optional counterparty
            payment_mode: Optional payment mode
            tags: Optional tags
            attachments: Optional attachment references
            custom_data: Values of the book's custom fields
            recorded_at: Timestamp of the entry; defaults to now

        Returns:
            The stored transaction

        Raises:
            NotFoundError: If the book doesn't exist
            ValidationError: If amount is negative or custom data is invalid
            StorageError: If the write was rolled back
        """
        book = self._require_book(book_id)
        if not category_id and book.preferences and book.preferences.default_category:
            category_id = book.preferences.default_category
        txn = TransactionEntity(
            id=uuid.uuid4().hex,
            book_id=book_id,
            type=TransactionType(type),
            amount=_to_amount(amount),
            transaction_date=transaction_date,
            recorded_at=recorded_at or utc_now(),
            description=description or "",
            category_id=category_id or DEFAULT_CATEGORY,
            party_id=party_id or None,
            payment_mode=payment_mode or None,
            tags=tuple(tags),
            attachments=tuple(attachments),
            custom_data=validate_custom_data(custom_data or {}),
            created_by=self.performed_by,
        )
        unknown = find_unknown_custom_keys(txn.custom_data, book.field_config)
        if unknown:
            logger.debug("Transaction %s keeps values for unknown fields: %s", txn.id, unknown)
        self.db.add_transaction(
            txn, build_audit_log(AuditAction.CREATE, txn, performed_by=self.performed_by)
        )
        return txn

    def _form_changes(self, book: Book, data: dict[str, Any]) -> dict[str, Any]:
        """Validate a submission and convert it to Transaction attributes."""
        result = validate_submission(book.field_config, data)
        if not result.is_valid:
            raise FormValidationError(result.errors)

        values = build_transaction_values(book.field_config, result.values)
        changes: dict[str, Any] = {"custom_data": {
            key: to_json_value(value) for key, value in values.pop("custom_data").items()
        }}
        if "amount" in values:
            changes["amount"] = _to_amount(values["amount"])
        if values.get("date"):
            changes["transaction_date"] = _to_date(values["date"])
        if values.get("type"):
            changes["type"] = _to_type(values["type"])
        for attribute in ("description", "category_id", "party_id", "payment_mode"):
            if attribute in values:
                value = values[attribute]
                changes[attribute] = str(value) if value not in (None, "") else None
        return changes

    def create_from_form(self, book_id: str, data: dict[str, Any]) -> TransactionEntity:
        """Create a transaction from a form submission.

        Args:
            book_id: Owning book
            data: Submitted values keyed by field key

        Returns:
            The stored transaction

        Raises:
            NotFoundError: If the book doesn't exist
            FormValidationError: If any field failed validation
        """
        book = self._require_book(book_id)
        changes = self._form_changes(book, data)
        default_type = TransactionType.EXPENSE
        if book.preferences and book.preferences.default_type:
            default_type = book.preferences.default_type
        return self.create_transaction(
            book_id=book_id,
            amount=changes.get("amount", Decimal("0")),
            transaction_date=changes.get("transaction_date") or date.today(),
            description=changes.get("description") or "",
            type=changes.get("type", default_type),
            category_id=changes.get("category_id"),
            party_id=changes.get("party_id"),
            payment_mode=changes.get("payment_mode"),
            custom_data=changes["custom_data"],
        )

    def update_from_form(self, transaction_id: str, data: dict[str, Any]) -> TransactionEntity:
        """Apply a form submission to an existing transaction.

        Fields missing from the submission keep their current values.

        Raises:
            NotFoundError: If the transaction or its book doesn't exist
            FormValidationError: If any field failed validation
        """
        txn = self.require_transaction(transaction_id)
        book = self._require_book(txn.book_id)
        changes = self._form_changes(book, {**form_defaults(txn), **data})
        changes["custom_data"] = {**txn.custom_data, **changes["custom_data"]}
        if changes.get("description") is None:
            changes["description"] = txn.description
        if changes.get("category_id") is None:
            changes["category_id"] = txn.category_id
        return self.update_transaction(transaction_id, **changes)

    def update_transaction(self, transaction_id: str, **changes: Any) -> TransactionEntity:
        """Update attributes of a transaction and log the field-level diff.

        Args:
            transaction_id: Transaction ID
            **changes: Transaction attributes to replace

        Returns:
            The updated transaction

        Raises:
            NotFoundError: If the transaction doesn't exist
            ValidationError: If an attribute is unknown or invalid
        """
        old = self.require_transaction(transaction_id)
        for forbidden in ("id", "created_by"):
            changes.pop(forbidden, None)
        unknown = set(changes) - set(old.__dataclass_fields__)
        if unknown:
            raise ValidationError(f"Unknown transaction attribute(s): {', '.join(sorted(unknown))}")
        if "amount" in changes:
            changes["amount"] = _to_amount(changes["amount"])
        if "type" in changes:
            changes["type"] = _to_type(changes["type"])
        if "transaction_date" in changes:
            changes["transaction_date"] = _to_date(changes["transaction_date"])
        if "custom_data" in changes:
            changes["custom_data"] = validate_custom_data(changes["custom_data"] or {})
        for attribute in ("tags", "attachments"):
            if attribute in changes:
                changes[attribute] = tuple(changes[attribute] or ())

        new = replace(old, **changes)
        log = build_audit_log(
            AuditAction.UPDATE,
            new,
            diff_transactions(old, new),
            performed_by=self.performed_by,
        )
        self.db.put_transaction(new, log)
        return new

    def delete_transaction(self, transaction_id: str) -> None:
        """Delete a transaction, logging the deletion against its last state.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        old = self.require_transaction(transaction_id)
        self.db.delete_transaction(
            transaction_id,
            build_audit_log(AuditAction.DELETE, old, performed_by=self.performed_by),
        )

    def get_transaction(self, transaction_id: str) -> Optional[TransactionEntity]:
        """Get transaction by ID."""
        return self.db.get_transaction(transaction_id)

    def list_transactions(
        self,
        book_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search: Optional[str] = None,
    ) -> list[TransactionEntity]:
        """List a book's transactions, newest first.

        Args:
            book_id: Book ID
            start_date: Optional inclusive start date
            end_date: Optional inclusive end date
            search: Optional case-insensitive text matched against
                description, category, party, payment mode, tags and
                custom values

        Returns:
            Matching transactions
        """
        transactions = self.db.list_transactions(book_id)
        if start_date is not None:
            transactions = [t for t in transactions if t.transaction_date >= start_date]
        if end_date is not None:
            transactions = [t for t in transactions if t.transaction_date <= end_date]
        if search:
            needle = search.lower()
            transactions = [t for t in transactions if needle in _search_text(t)]
        return transactions

    def get_history(self, transaction_id: str) -> list[AuditLog]:
        """Audit entries of a transaction, oldest first."""
        return self.db.list_audit_logs(transaction_id=transaction_id)
