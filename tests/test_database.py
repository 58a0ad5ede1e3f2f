"""Tests for the SQLAlchemy storage layer."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from lekha.domain.audit import build_audit_log
from lekha.domain.entities import (
    AuditAction,
    FieldConfig,
    FieldType,
    FieldValidation,
    Transaction,
    TransactionType,
    utc_now,
)
from lekha.domain.errors import ConflictError, StorageError, ValidationError


def _transaction(book_id, txn_id="t1", **overrides):
    values = dict(
        id=txn_id,
        book_id=book_id,
        type=TransactionType.EXPENSE,
        amount=Decimal("12.50"),
        transaction_date=date(2024, 3, 1),
        recorded_at=utc_now(),
        description="Tea",
        category_id="Food",
        custom_data={"invoice": "A1", "qty": 2.0, "paid": True, "note": None},
    )
    values.update(overrides)
    return Transaction(**values)


def test_book_roundtrip(temp_db, sample_book):
    """Books keep their field schema through storage."""
    stored = temp_db.get_book(sample_book.id)

    assert stored == sample_book
    assert [f.key for f in stored.sorted_fields()][:3] == ["amount", "date", "description"]


def test_field_validation_roundtrip(temp_db, book_service, sample_book):
    """Field validation rules and options survive storage."""
    field = FieldConfig(
        key="qty",
        label="Qty",
        type=FieldType.NUMBER,
        order=99,
        validation=FieldValidation(min=1, max=5),
    )
    book_service.save_fields(sample_book.id, [*sample_book.field_config, field])

    stored = temp_db.get_book(sample_book.id)

    assert stored.field_config[-1].validation == FieldValidation(min=1, max=5)
    assert stored.field_config[-1].order == len(stored.field_config)


def test_duplicate_book_id_conflicts(temp_db, sample_book):
    """Adding a book with an existing id fails."""
    with pytest.raises(ConflictError):
        temp_db.add_book(sample_book)


def test_transaction_roundtrip(temp_db, sample_book):
    """Amounts, dates and custom values keep their types."""
    txn = _transaction(sample_book.id)
    temp_db.add_transaction(txn, build_audit_log(AuditAction.CREATE, txn))

    stored = temp_db.get_transaction("t1")

    assert stored.amount == Decimal("12.50")
    assert stored.transaction_date == date(2024, 3, 1)
    assert stored.custom_data == {"invoice": "A1", "qty": 2.0, "paid": True, "note": None}
    assert stored.type == TransactionType.EXPENSE


def test_duplicate_transaction_id_conflicts(temp_db, sample_book):
    """add_transaction refuses an existing id; put_transaction replaces."""
    txn = _transaction(sample_book.id)
    temp_db.add_transaction(txn, build_audit_log(AuditAction.CREATE, txn))

    with pytest.raises(ConflictError):
        temp_db.add_transaction(txn, build_audit_log(AuditAction.CREATE, txn))

    changed = _transaction(sample_book.id, description="Coffee")
    temp_db.put_transaction(changed, build_audit_log(AuditAction.UPDATE, changed))
    assert temp_db.get_transaction("t1").description == "Coffee"
    assert len(temp_db.list_audit_logs(transaction_id="t1")) == 2


def test_unsupported_custom_value_is_rejected(temp_db, sample_book):
    """Nested values never reach the store."""
    txn = _transaction(sample_book.id, custom_data={"bad": ["x"]})

    with pytest.raises(ValidationError):
        temp_db.add_transaction(txn, build_audit_log(AuditAction.CREATE, txn))

    assert temp_db.get_transaction("t1") is None
    assert temp_db.list_audit_logs(transaction_id="t1") == []


def test_failed_commit_rolls_back_transaction_and_audit(temp_db, sample_book, monkeypatch):
    """A transaction and its audit entry are committed together or not at all."""
    txn = _transaction(sample_book.id)
    session = temp_db._get_session()

    def fail():
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(session, "commit", fail)
    with pytest.raises(StorageError, match="add transaction"):
        temp_db.add_transaction(txn, build_audit_log(AuditAction.CREATE, txn))

    assert temp_db.get_transaction("t1") is None
    assert temp_db.list_audit_logs(transaction_id="t1") == []


def test_list_transactions_newest_first(temp_db, sample_book):
    """Transactions are listed by date, newest first."""
    for txn_id, day in (("a", 1), ("b", 3), ("c", 2)):
        txn = _transaction(sample_book.id, txn_id, transaction_date=date(2024, 3, day))
        temp_db.add_transaction(txn, build_audit_log(AuditAction.CREATE, txn))

    assert [t.id for t in temp_db.list_transactions(sample_book.id)] == ["b", "c", "a"]


def test_restore_clear_keeps_templates(temp_db, template_service, sample_book):
    """Clearing removes books, transactions and audit entries only."""
    txn = _transaction(sample_book.id)
    temp_db.add_transaction(txn, build_audit_log(AuditAction.CREATE, txn))

    temp_db.restore([], [], clear_existing=True)

    assert temp_db.list_books() == []
    assert temp_db.list_transactions() == []
    assert temp_db.list_audit_logs() == []
    assert len(temp_db.list_templates()) == 3
