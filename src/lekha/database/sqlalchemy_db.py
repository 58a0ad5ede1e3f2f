"""Generic SQLAlchemy database implementation."""

import logging
from dataclasses import replace
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lekha.database.base import Database
from lekha.database.models import (
    AuditLog,
    Book,
    Template,
    Transaction,
    create_session_factory,
)
from lekha.database.mappers import (
    audit_log_to_domain,
    audit_log_to_orm,
    book_to_domain,
    book_to_orm,
    template_to_domain,
    template_to_orm,
    transaction_to_domain,
    transaction_to_orm,
)
from lekha.domain.entities import (
    AuditLog as DomainAuditLog,
    Book as DomainBook,
    FieldTemplate as DomainTemplate,
    Transaction as DomainTransaction,
)
from lekha.domain.errors import (
    ConflictError,
    DomainError,
    StorageError,
    duplicate_id,
    template_not_found,
    transaction_not_found,
)
from lekha.domain.values import validate_custom_data

logger = logging.getLogger(__name__)


class SQLAlchemyDatabase(Database):
    """SQLAlchemy-based implementation of Database interface."""

    def __init__(self, database_url: str):
        """Initialize SQLAlchemy database.

        Args:
            database_url: SQLAlchemy database URL (e.g., 'sqlite:///path/to.db')
        """
        self.database_url = database_url
        self.session_factory = create_session_factory(database_url)
        self._session: Optional[Session] = None

    def _get_session(self) -> Session:
        """Get current session, creating one if needed."""
        if self._session is None:
            self._session = self.session_factory()
        return self._session

    def _commit(self, action: str) -> None:
        """Commit the pending unit of work or roll all of it back."""
        session = self._get_session()
        try:
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Storage write failed while trying to %s", action)
            raise StorageError(f"Could not {action}: {e}") from e

    def connect(self) -> None:
        """Connect to the database."""
        # Connection is lazy, so this is a no-op
        pass

    def disconnect(self) -> None:
        """Disconnect from the database."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        # Schema is created automatically by create_session_factory
        pass

    # Book operations
    def add_book(self, book: DomainBook) -> str:
        """Insert a book. Fails if the id exists. Returns book ID."""
        session = self._get_session()
        if session.query(Book).filter(Book.id == book.id).first() is not None:
            raise ConflictError(duplicate_id("Book", book.id))
        session.add(book_to_orm(book))
        self._commit("add book")
        return book.id

    def _stage_book(self, book: DomainBook) -> None:
        session = self._get_session()
        existing = session.query(Book).filter(Book.id == book.id).first()
        if existing is None:
            session.add(book_to_orm(book))
        else:
            book_to_orm(book, existing)

    def put_book(self, book: DomainBook) -> str:
        """Insert or replace a book. Returns book ID."""
        self._stage_book(book)
        self._commit("save book")
        return book.id

    def get_book(self, book_id: str) -> Optional[DomainBook]:
        """Get book by ID."""
        session = self._get_session()
        book = session.query(Book).filter(Book.id == book_id).first()
        if book is None:
            return None
        return book_to_domain(book)

    def list_books(self) -> list[DomainBook]:
        """List all books."""
        session = self._get_session()
        books = session.query(Book).order_by(Book.name).all()
        return [book_to_domain(b) for b in books]

    def delete_book(self, book_id: str) -> None:
        """Delete the book record only. Transactions and audit logs stay."""
        session = self._get_session()
        book = session.query(Book).filter(Book.id == book_id).first()
        if book is None:
            return
        session.delete(book)
        self._commit("delete book")

    # Transaction operations
    def _stage_transaction(self, transaction: DomainTransaction, insert_only: bool) -> None:
        session = self._get_session()
        transaction = _with_checked_custom_data(transaction)
        existing = session.query(Transaction).filter(Transaction.id == transaction.id).first()
        if existing is None:
            session.add(transaction_to_orm(transaction))
        elif insert_only:
            raise ConflictError(duplicate_id("Transaction", transaction.id))
        else:
            transaction_to_orm(transaction, existing)

    def add_transaction(self, transaction: DomainTransaction, audit_log: DomainAuditLog) -> str:
        """Insert a transaction and its audit entry atomically. Returns transaction ID."""
        self._stage_transaction(transaction, insert_only=True)
        self._get_session().add(audit_log_to_orm(audit_log))
        self._commit("add transaction")
        return transaction.id

    def put_transaction(self, transaction: DomainTransaction, audit_log: DomainAuditLog) -> str:
        """Insert or replace a transaction and add its audit entry atomically."""
        self._stage_transaction(transaction, insert_only=False)
        self._get_session().add(audit_log_to_orm(audit_log))
        self._commit("save transaction")
        return transaction.id

    def delete_transaction(self, transaction_id: str, audit_log: DomainAuditLog) -> None:
        """Delete a transaction and add its audit entry atomically."""
        session = self._get_session()
        txn = session.query(Transaction).filter(Transaction.id == transaction_id).first()
        if txn is None:
            raise StorageError(transaction_not_found(transaction_id))
        session.delete(txn)
        session.add(audit_log_to_orm(audit_log))
        self._commit("delete transaction")

    def get_transaction(self, transaction_id: str) -> Optional[DomainTransaction]:
        """Get transaction by ID."""
        session = self._get_session()
        txn = session.query(Transaction).filter(Transaction.id == transaction_id).first()
        if txn is None:
            return None
        return transaction_to_domain(txn)

    def list_transactions(self, book_id: Optional[str] = None) -> list[DomainTransaction]:
        """List transactions newest first, optionally only those of one book."""
        session = self._get_session()
        query = session.query(Transaction)
        if book_id is not None:
            query = query.filter(Transaction.book_id == book_id)
        transactions = query.order_by(
            Transaction.transaction_date.desc(), Transaction.recorded_at.desc()
        ).all()
        return [transaction_to_domain(t) for t in transactions]

    # Audit log operations
    def list_audit_logs(
        self, book_id: Optional[str] = None, transaction_id: Optional[str] = None
    ) -> list[DomainAuditLog]:
        """List audit entries oldest first, filtered by book and/or transaction."""
        session = self._get_session()
        query = session.query(AuditLog)
        if book_id is not None:
            query = query.filter(AuditLog.book_id == book_id)
        if transaction_id is not None:
            query = query.filter(AuditLog.transaction_id == transaction_id)
        logs = query.order_by(AuditLog.timestamp).all()
        return [audit_log_to_domain(log) for log in logs]

    # Template operations
    def add_template(self, template: DomainTemplate) -> str:
        """Insert a template. Fails if the id exists. Returns template ID."""
        session = self._get_session()
        if session.query(Template).filter(Template.id == template.id).first() is not None:
            raise ConflictError(duplicate_id("Template", template.id))
        session.add(template_to_orm(template))
        self._commit("add template")
        return template.id

    def put_template(self, template: DomainTemplate) -> str:
        """Insert or replace a template."""
        session = self._get_session()
        existing = session.query(Template).filter(Template.id == template.id).first()
        if existing is None:
            session.add(template_to_orm(template))
        else:
            template_to_orm(template, existing)
        self._commit("save template")
        return template.id

    def get_template(self, template_id: str) -> Optional[DomainTemplate]:
        """Get template by ID."""
        session = self._get_session()
        template = session.query(Template).filter(Template.id == template_id).first()
        if template is None:
            return None
        return template_to_domain(template)

    def list_templates(self) -> list[DomainTemplate]:
        """List all templates, system defaults first."""
        session = self._get_session()
        templates = session.query(Template).order_by(
            Template.is_default.desc(), Template.name
        ).all()
        return [template_to_domain(t) for t in templates]

    def delete_template(self, template_id: str) -> None:
        """Delete a template."""
        session = self._get_session()
        template = session.query(Template).filter(Template.id == template_id).first()
        if template is None:
            raise StorageError(template_not_found(template_id))
        session.delete(template)
        self._commit("delete template")

    def restore(
        self,
        books: Sequence[DomainBook],
        entries: Sequence[tuple[DomainTransaction, DomainAuditLog]],
        clear_existing: bool = False,
    ) -> None:
        """Upsert books and transactions with their audit entries in one commit."""
        session = self._get_session()
        try:
            if clear_existing:
                session.query(AuditLog).delete()
                session.query(Transaction).delete()
                session.query(Book).delete()
            for book in books:
                self._stage_book(book)
            for transaction, audit_log in entries:
                self._stage_transaction(transaction, insert_only=False)
                session.add(audit_log_to_orm(audit_log))
        except DomainError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Storage write failed while staging a restore")
            raise StorageError(f"Could not restore backup: {e}") from e
        self._commit("restore backup")


def _with_checked_custom_data(transaction: DomainTransaction) -> DomainTransaction:
    """Run the custom_data validation pass before a transaction is staged."""
    return replace(transaction, custom_data=validate_custom_data(transaction.custom_data))
