"""JSON backup and restore of books and transactions.

Single book files have the shape ``{book, transactions, exported_at, version}``;
full backups ``{books, transactions, exported_at, version}``. Amounts are
written as JSON numbers and read back through ``str`` so two-decimal values
survive the round trip exactly.
"""

import json
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from dateutil.parser import isoparse

from lekha.database.base import Database
from lekha.domain.audit import build_audit_log, diff_transactions
from lekha.domain.entities import (
    AuditAction,
    AuditLog,
    Book,
    BookPreferences,
    FieldConfig,
    Transaction,
    TransactionType,
    utc_now,
)
from lekha.domain.errors import (
    ImportParseError,
    NotFoundError,
    ValidationError,
    book_not_found,
)
from lekha.domain.values import round_amount, validate_custom_data

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"
COPY_SUFFIX = " (Copy)"


@dataclass(frozen=True)
class RestoreSummary:
    """Counts of records written by an import or restore."""

    books: int
    transactions: int


def _parse_datetime(value: Any, name: str) -> datetime:
    if not isinstance(value, str):
        raise ImportParseError(f"Invalid backup format: '{name}' must be an ISO timestamp")
    try:
        parsed = isoparse(value)
    except ValueError as e:
        raise ImportParseError(f"Invalid backup format: bad timestamp '{value}'") from e
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_date(value: Any, name: str) -> date:
    return _parse_datetime(value, name).date()


def book_to_dict(book: Book) -> dict[str, Any]:
    """Serialize a book for a backup file."""
    return {
        "id": book.id,
        "name": book.name,
        "currency": book.currency,
        "created_at": book.created_at.isoformat(),
        "field_config": [f.to_dict() for f in book.field_config],
        "primary_amount_field": book.primary_amount_field,
        "preferences": book.preferences.to_dict() if book.preferences else None,
    }


def book_from_dict(data: Any) -> Book:
    """Build a book from its backup representation.

    Raises:
        ImportParseError: If id or name is missing or a field is malformed
    """
    if not isinstance(data, dict) or not data.get("id") or not data.get("name"):
        raise ImportParseError("Invalid book file format: book needs an id and a name")
    try:
        fields = tuple(FieldConfig.from_dict(f) for f in data.get("field_config") or ())
        preferences = BookPreferences.from_dict(data.get("preferences"))
    except (KeyError, TypeError, ValueError) as e:
        raise ImportParseError(f"Invalid book file format: {e}") from e
    created_at = data.get("created_at")
    return Book(
        id=str(data["id"]),
        name=str(data["name"]),
        currency=str(data.get("currency") or "INR"),
        created_at=_parse_datetime(created_at, "created_at") if created_at else utc_now(),
        field_config=fields,
        primary_amount_field=data.get("primary_amount_field"),
        preferences=preferences,
    )


def transaction_to_dict(transaction: Transaction) -> dict[str, Any]:
    """Serialize a transaction for a backup file."""
    return {
        "id": transaction.id,
        "book_id": transaction.book_id,
        "type": transaction.type.value,
        "amount": float(transaction.amount),
        "transaction_date": transaction.transaction_date.isoformat(),
        "recorded_at": transaction.recorded_at.isoformat(),
        "description": transaction.description,
        "category_id": transaction.category_id,
        "party_id": transaction.party_id,
        "payment_mode": transaction.payment_mode,
        "tags": list(transaction.tags),
        "attachments": list(transaction.attachments),
        "custom_data": dict(transaction.custom_data),
        "created_by": transaction.created_by,
    }


def transaction_from_dict(data: Any) -> Transaction:
    """Build a transaction from its backup representation.

    Files that carry a single ``date`` timestamp instead of the split
    ``transaction_date``/``recorded_at`` pair are accepted; the timestamp
    supplies both.

    Raises:
        ImportParseError: If a required value is missing or malformed
    """
    if not isinstance(data, dict) or not data.get("id") or not data.get("book_id"):
        raise ImportParseError("Invalid backup format: transaction needs an id and a book_id")
    try:
        amount = Decimal(str(data.get("amount", 0)))
        txn_type = TransactionType(data.get("type", TransactionType.EXPENSE.value))
    except (InvalidOperation, ValueError) as e:
        raise ImportParseError(f"Invalid backup format in transaction {data['id']}: {e}") from e
    if not amount.is_finite() or amount < 0:
        raise ImportParseError(f"Invalid backup format: transaction {data['id']} has a bad amount")
    amount = round_amount(amount)

    legacy = data.get("date")
    recorded_raw = data.get("recorded_at", legacy)
    date_raw = data.get("transaction_date", legacy)
    if date_raw is None:
        raise ImportParseError(f"Invalid backup format: transaction {data['id']} has no date")
    recorded_at = _parse_datetime(recorded_raw, "recorded_at") if recorded_raw else utc_now()

    custom_data = data.get("custom_data") or {}
    if not isinstance(custom_data, dict):
        raise ImportParseError(f"Invalid backup format: transaction {data['id']} custom_data")
    try:
        custom_data = validate_custom_data(custom_data)
    except ValidationError as e:
        raise ImportParseError(f"Invalid backup format in transaction {data['id']}: {e}") from e

    return Transaction(
        id=str(data["id"]),
        book_id=str(data["book_id"]),
        type=txn_type,
        amount=amount,
        transaction_date=_parse_date(date_raw, "transaction_date"),
        recorded_at=recorded_at,
        description=data.get("description") or "",
        category_id=data.get("category_id") or "Uncategorized",
        party_id=data.get("party_id"),
        payment_mode=data.get("payment_mode"),
        tags=tuple(data.get("tags") or ()),
        attachments=tuple(data.get("attachments") or ()),
        custom_data=custom_data,
        created_by=data.get("created_by"),
    )


def dumps(data: dict[str, Any]) -> str:
    """Render a backup document as indented JSON."""
    return json.dumps(data, indent=2)


def loads(text: str) -> dict[str, Any]:
    """Parse a backup document.

    Raises:
        ImportParseError: If the text is not a JSON object
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportParseError(f"Backup file is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ImportParseError("Backup file must contain a JSON object")
    return data


def _transaction_list(data: dict[str, Any]) -> list[Transaction]:
    raw = data.get("transactions")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ImportParseError("Invalid backup format: transactions must be a list")
    return [transaction_from_dict(item) for item in raw]


class BackupService:
    """Exports and imports books and transactions as JSON documents."""

    def __init__(self, db: Database, performed_by: Optional[str] = None):
        """Initialize backup service.

        Args:
            db: Database instance
            performed_by: Name recorded on audit entries of imported transactions
        """
        self.db = db
        self.performed_by = performed_by

    def export_book(self, book_id: str) -> dict[str, Any]:
        """Export one book with its transactions.

        Raises:
            NotFoundError: If the book doesn't exist
        """
        book = self.db.get_book(book_id)
        if book is None:
            raise NotFoundError(book_not_found(book_id))
        return {
            "book": book_to_dict(book),
            "transactions": [transaction_to_dict(t) for t in self.db.list_transactions(book_id)],
            "exported_at": utc_now().isoformat(),
            "version": BACKUP_VERSION,
        }

    def export_all(self) -> dict[str, Any]:
        """Export every book and the transactions of each."""
        books = self.db.list_books()
        transactions = []
        for book in books:
            transactions.extend(transaction_to_dict(t) for t in self.db.list_transactions(book.id))
        return {
            "version": BACKUP_VERSION,
            "exported_at": utc_now().isoformat(),
            "books": [book_to_dict(b) for b in books],
            "transactions": transactions,
        }

    def _with_audits(
        self, transactions: list[Transaction], cleared: bool = False
    ) -> list[tuple[Transaction, AuditLog]]:
        """Pair each incoming transaction with the audit entry of its upsert."""
        entries = []
        for transaction in transactions:
            existing = None if cleared else self.db.get_transaction(transaction.id)
            audit = build_audit_log(
                AuditAction.UPDATE,
                transaction,
                diff_transactions(existing, transaction),
                self.performed_by,
            )
            entries.append((transaction, audit))
        return entries

    def import_book(self, data: dict[str, Any], as_copy: bool = False) -> Book:
        """Import a single book file.

        Without ``as_copy`` the book and its transactions overwrite any
        records with the same ids. With it, the book gets a fresh id and a
        " (Copy)" suffix, and every transaction gets a fresh id bound to the
        new book.

        Args:
            data: Parsed single-book document
            as_copy: Import alongside the original instead of over it

        Returns:
            The imported book

        Raises:
            ImportParseError: If the document is malformed; nothing is written
            StorageError: If the write fails; nothing is written
        """
        book = book_from_dict(data.get("book"))
        transactions = _transaction_list(data)

        if as_copy:
            book = replace(book, id=uuid.uuid4().hex, name=f"{book.name}{COPY_SUFFIX}")
            transactions = [
                replace(t, id=uuid.uuid4().hex, book_id=book.id) for t in transactions
            ]

        self.db.restore([book], self._with_audits(transactions))
        logger.info(
            "Imported book %s (%s) with %d transactions", book.name, book.id, len(transactions)
        )
        return book

    def restore_all(self, data: dict[str, Any], replace_existing: bool = False) -> RestoreSummary:
        """Restore a full backup.

        Records are upserted by id. With ``replace_existing`` every book,
        transaction and audit entry is removed first, in the same commit as
        the upserts.

        Raises:
            ImportParseError: If the document has no books list or a record is
                malformed; nothing is written
            StorageError: If the write fails; local data is left as it was
        """
        raw_books = data.get("books")
        if not isinstance(raw_books, list):
            raise ImportParseError("Invalid backup format: missing books")
        books = [book_from_dict(b) for b in raw_books]
        transactions = _transaction_list(data)

        entries = self._with_audits(transactions, cleared=replace_existing)
        self.db.restore(books, entries, clear_existing=replace_existing)
        logger.info("Restored %d books and %d transactions", len(books), len(transactions))
        return RestoreSummary(books=len(books), transactions=len(transactions))
