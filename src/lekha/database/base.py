"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

# Import entities directly to avoid circular import through domain/__init__.py
from lekha.domain.entities import (
    AuditLog,
    Book,
    FieldTemplate,
    Transaction,
)


class Database(ABC):
    """Abstract database interface for lekha.

    Collections: books, transactions (indexed by book id and date),
    audit_logs (indexed by book id and transaction id) and templates.
    Every transaction write takes the audit entry describing it and commits
    both together.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Book operations
    @abstractmethod
    def add_book(self, book: Book) -> str:
        """Insert a book. Fails if the id exists. Returns book ID."""
        pass

    @abstractmethod
    def put_book(self, book: Book) -> str:
        """Insert or replace a book. Returns book ID."""
        pass

    @abstractmethod
    def get_book(self, book_id: str) -> Optional[Book]:
        """Get book by ID."""
        pass

    @abstractmethod
    def list_books(self) -> list[Book]:
        """List all books."""
        pass

    @abstractmethod
    def delete_book(self, book_id: str) -> None:
        """Delete the book record only. Transactions and audit logs stay."""
        pass

    # Transaction operations
    @abstractmethod
    def add_transaction(self, transaction: Transaction, audit_log: AuditLog) -> str:
        """Insert a transaction and its audit entry atomically. Returns transaction ID."""
        pass

    @abstractmethod
    def put_transaction(self, transaction: Transaction, audit_log: AuditLog) -> str:
        """Insert or replace a transaction and add its audit entry atomically."""
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: str, audit_log: AuditLog) -> None:
        """Delete a transaction and add its audit entry atomically."""
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def list_transactions(self, book_id: Optional[str] = None) -> list[Transaction]:
        """List transactions, optionally only those of one book."""
        pass

    # Audit log operations
    @abstractmethod
    def list_audit_logs(
        self, book_id: Optional[str] = None, transaction_id: Optional[str] = None
    ) -> list[AuditLog]:
        """List audit entries oldest first, filtered by book and/or transaction."""
        pass

    # Template operations
    @abstractmethod
    def add_template(self, template: FieldTemplate) -> str:
        """Insert a template. Fails if the id exists. Returns template ID."""
        pass

    @abstractmethod
    def put_template(self, template: FieldTemplate) -> str:
        """Insert or replace a template."""
        pass

    @abstractmethod
    def get_template(self, template_id: str) -> Optional[FieldTemplate]:
        """Get template by ID."""
        pass

    @abstractmethod
    def list_templates(self) -> list[FieldTemplate]:
        """List all templates."""
        pass

    @abstractmethod
    def delete_template(self, template_id: str) -> None:
        """Delete a template."""
        pass

    @abstractmethod
    def restore(
        self,
        books: Sequence[Book],
        entries: Sequence[tuple[Transaction, AuditLog]],
        clear_existing: bool = False,
    ) -> None:
        """Upsert books and transactions with their audit entries in one commit.

        With ``clear_existing`` every book, transaction and audit entry is
        removed inside the same commit first; templates are kept. On failure
        nothing changes.
        """
        pass
