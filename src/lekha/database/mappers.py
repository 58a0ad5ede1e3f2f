"""Mapper functions to convert between domain models and SQLAlchemy models.

Nested value objects (field configs, preferences, audit changes) are stored
as JSON and rebuilt here.
"""

from decimal import Decimal

from lekha.domain import entities as domain
from lekha.database.models import (
    AuditLog as ORMAuditLog,
    Book as ORMBook,
    Template as ORMTemplate,
    Transaction as ORMTransaction,
)


def _fields_from_json(data) -> tuple[domain.FieldConfig, ...]:
    return tuple(domain.FieldConfig.from_dict(item) for item in data or [])


def _fields_to_json(fields) -> list[dict]:
    return [f.to_dict() for f in fields]


def _preferences_to_json(preferences):
    return preferences.to_dict() if preferences is not None else None


def book_to_domain(orm_book: ORMBook) -> domain.Book:
    """Convert SQLAlchemy Book model to domain Book entity."""
    return domain.Book(
        id=orm_book.id,
        name=orm_book.name,
        currency=orm_book.currency,
        created_at=orm_book.created_at,
        field_config=_fields_from_json(orm_book.field_config),
        primary_amount_field=orm_book.primary_amount_field,
        preferences=domain.BookPreferences.from_dict(orm_book.preferences),
    )


def book_to_orm(book: domain.Book, orm_book: ORMBook | None = None) -> ORMBook:
    """Copy a domain Book onto a new or existing SQLAlchemy Book."""
    orm_book = orm_book if orm_book is not None else ORMBook(id=book.id)
    orm_book.name = book.name
    orm_book.currency = book.currency
    orm_book.created_at = book.created_at
    orm_book.field_config = _fields_to_json(book.field_config)
    orm_book.primary_amount_field = book.primary_amount_field
    orm_book.preferences = _preferences_to_json(book.preferences)
    return orm_book


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=orm_transaction.id,
        book_id=orm_transaction.book_id,
        type=domain.TransactionType(orm_transaction.type),
        amount=Decimal(str(orm_transaction.amount)),
        transaction_date=orm_transaction.transaction_date,
        recorded_at=orm_transaction.recorded_at,
        description=orm_transaction.description,
        category_id=orm_transaction.category_id,
        party_id=orm_transaction.party_id,
        payment_mode=orm_transaction.payment_mode,
        tags=tuple(orm_transaction.tags or ()),
        attachments=tuple(orm_transaction.attachments or ()),
        custom_data=dict(orm_transaction.custom_data or {}),
        created_by=orm_transaction.created_by,
    )


def transaction_to_orm(
    transaction: domain.Transaction, orm_transaction: ORMTransaction | None = None
) -> ORMTransaction:
    """Copy a domain Transaction onto a new or existing SQLAlchemy Transaction."""
    if orm_transaction is None:
        orm_transaction = ORMTransaction(id=transaction.id)
    orm_transaction.book_id = transaction.book_id
    orm_transaction.type = transaction.type.value
    orm_transaction.amount = transaction.amount
    orm_transaction.transaction_date = transaction.transaction_date
    orm_transaction.recorded_at = transaction.recorded_at
    orm_transaction.description = transaction.description
    orm_transaction.category_id = transaction.category_id
    orm_transaction.party_id = transaction.party_id
    orm_transaction.payment_mode = transaction.payment_mode
    orm_transaction.tags = list(transaction.tags)
    orm_transaction.attachments = list(transaction.attachments)
    orm_transaction.custom_data = dict(transaction.custom_data)
    orm_transaction.created_by = transaction.created_by
    return orm_transaction


def audit_log_to_domain(orm_log: ORMAuditLog) -> domain.AuditLog:
    """Convert SQLAlchemy AuditLog model to domain AuditLog entity."""
    return domain.AuditLog(
        id=orm_log.id,
        book_id=orm_log.book_id,
        transaction_id=orm_log.transaction_id,
        action=domain.AuditAction(orm_log.action),
        changes=tuple(
            domain.AuditChange(
                field=item["field"],
                old_value=item.get("old_value"),
                new_value=item.get("new_value"),
            )
            for item in orm_log.changes or []
        ),
        performed_by=orm_log.performed_by,
        timestamp=orm_log.timestamp,
    )


def audit_log_to_orm(log: domain.AuditLog) -> ORMAuditLog:
    """Convert a domain AuditLog to a new SQLAlchemy AuditLog row."""
    return ORMAuditLog(
        id=log.id,
        book_id=log.book_id,
        transaction_id=log.transaction_id,
        action=log.action.value,
        changes=[
            {"field": c.field, "old_value": c.old_value, "new_value": c.new_value}
            for c in log.changes
        ],
        performed_by=log.performed_by,
        timestamp=log.timestamp,
    )


def template_to_domain(orm_template: ORMTemplate) -> domain.FieldTemplate:
    """Convert SQLAlchemy Template model to domain FieldTemplate entity."""
    return domain.FieldTemplate(
        id=orm_template.id,
        name=orm_template.name,
        description=orm_template.description,
        field_config=_fields_from_json(orm_template.field_config),
        created_at=orm_template.created_at,
        preferences=domain.BookPreferences.from_dict(orm_template.preferences),
        is_default=orm_template.is_default,
    )


def template_to_orm(
    template: domain.FieldTemplate, orm_template: ORMTemplate | None = None
) -> ORMTemplate:
    """Copy a domain FieldTemplate onto a new or existing SQLAlchemy Template."""
    orm_template = orm_template if orm_template is not None else ORMTemplate(id=template.id)
    orm_template.name = template.name
    orm_template.description = template.description
    orm_template.field_config = _fields_to_json(template.field_config)
    orm_template.preferences = _preferences_to_json(template.preferences)
    orm_template.is_default = template.is_default
    orm_template.created_at = template.created_at
    return orm_template
