"""Tests for the audit trail."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

from lekha.domain.audit import AuditService, build_audit_log, diff_transactions
from lekha.domain.entities import AuditAction


def _create(transaction_service, book_id, **kwargs):
    return transaction_service.create_transaction(
        book_id, Decimal("100"), date(2024, 1, 1), "Rent", category_id="Home", **kwargs
    )


def _updates(transaction_service, transaction_id):
    return [
        log
        for log in transaction_service.get_history(transaction_id)
        if log.action == AuditAction.UPDATE
    ]


def test_create_is_logged(transaction_service, sample_book):
    """A create writes one entry with no changes."""
    txn = _create(transaction_service, sample_book.id)

    history = transaction_service.get_history(txn.id)

    assert len(history) == 1
    assert history[0].action == AuditAction.CREATE
    assert history[0].changes == ()
    assert history[0].performed_by == "tester"
    assert history[0].book_id == sample_book.id


def test_update_logs_only_changed_fields(transaction_service, sample_book):
    """One change per changed attribute and none for the rest."""
    txn = _create(transaction_service, sample_book.id, custom_data={"ref": "A"})

    transaction_service.update_transaction(
        txn.id, amount=Decimal("120"), description="Rent", custom_data={"ref": "B"}
    )

    update = _updates(transaction_service, txn.id)[0]
    changes = {c.field: (c.old_value, c.new_value) for c in update.changes}
    assert changes == {
        "amount": (100.0, 120.0),
        "custom_data": ({"ref": "A"}, {"ref": "B"}),
    }


def test_noop_update_logs_empty_change_list(transaction_service, sample_book):
    """Writing the same values records an update without changes."""
    txn = _create(transaction_service, sample_book.id)

    transaction_service.update_transaction(txn.id, description="Rent")

    update = _updates(transaction_service, txn.id)[0]
    assert update.changes == ()


def test_history_survives_delete(transaction_service, temp_db, sample_book):
    """Audit entries outlive the transaction."""
    txn = _create(transaction_service, sample_book.id)
    transaction_service.update_transaction(txn.id, description="Rent March")
    transaction_service.delete_transaction(txn.id)

    actions = [log.action for log in AuditService(temp_db).history(txn.id)]

    assert sorted(a.value for a in actions) == ["create", "delete", "update"]
    assert len(AuditService(temp_db).book_log(sample_book.id)) == 3


def test_diff_against_nothing_is_empty(transaction_service, sample_book):
    """There is nothing to diff for a new record."""
    txn = _create(transaction_service, sample_book.id)

    assert diff_transactions(None, txn) == ()


def test_performer_falls_back(transaction_service, sample_book):
    """Without an explicit performer the creator is used, then "system"."""
    txn = _create(transaction_service, sample_book.id)

    assert build_audit_log(AuditAction.UPDATE, txn).performed_by == "tester"

    anonymous = replace(txn, created_by=None)
    assert build_audit_log(AuditAction.UPDATE, anonymous).performed_by == "system"
