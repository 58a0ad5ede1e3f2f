"""Audit trail for transaction mutations."""

import json
import uuid
from dataclasses import fields as dataclass_fields
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from lekha.database.base import Database
from lekha.domain.entities import AuditAction, AuditChange, AuditLog, Transaction, utc_now

DEFAULT_PERFORMER = "system"


def to_json_value(value: Any) -> Any:
    """Convert a transaction attribute into a plain JSON value."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (tuple, list)):
        return [to_json_value(v) for v in value]
    if isinstance(value, dict):
        return {k: to_json_value(v) for k, v in value.items()}
    return value


def _serialized(value: Any) -> str:
    return json.dumps(to_json_value(value), sort_keys=True, default=str)


def diff_transactions(old: Optional[Transaction], new: Transaction) -> tuple[AuditChange, ...]:
    """Compare two versions of a transaction attribute by attribute.

    Values are compared by their JSON serialization, so equal containers
    with different identity are not reported. ``custom_data``, ``tags`` and
    ``attachments`` each count as a single attribute.

    Args:
        old: Stored version, or None when there is nothing to compare against
        new: Version about to be written

    Returns:
        One change per attribute whose value differs
    """
    if old is None:
        return ()
    changes = []
    for attribute in dataclass_fields(new):
        old_value = getattr(old, attribute.name, None)
        new_value = getattr(new, attribute.name)
        if _serialized(old_value) != _serialized(new_value):
            changes.append(
                AuditChange(
                    field=attribute.name,
                    old_value=to_json_value(old_value),
                    new_value=to_json_value(new_value),
                )
            )
    return tuple(changes)


def build_audit_log(
    action: AuditAction,
    transaction: Transaction,
    changes: tuple[AuditChange, ...] = (),
    performed_by: Optional[str] = None,
) -> AuditLog:
    """Create the audit entry for one mutation of ``transaction``.

    The performer falls back to the transaction's creator, then "system".
    """
    return AuditLog(
        id=uuid.uuid4().hex,
        book_id=transaction.book_id,
        transaction_id=transaction.id,
        action=action,
        changes=changes,
        performed_by=performed_by or transaction.created_by or DEFAULT_PERFORMER,
        timestamp=utc_now(),
    )


class AuditService:
    """Read access to the audit trail."""

    def __init__(self, db: Database):
        self.db = db

    def history(self, transaction_id: str) -> list[AuditLog]:
        """Audit entries of one transaction, oldest first."""
        return self.db.list_audit_logs(transaction_id=transaction_id)

    def book_log(self, book_id: str) -> list[AuditLog]:
        """Audit entries of every transaction of a book, oldest first."""
        return self.db.list_audit_logs(book_id=book_id)
