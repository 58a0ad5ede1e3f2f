"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class FormValidationError(ValidationError):
    """A form submission failed; ``errors`` maps field key to message."""

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(self.errors.values()))


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as a duplicate id on add."""


class ImportParseError(DomainError):
    """CSV or backup file could not be used; nothing was written."""


class StorageError(DomainError):
    """The persistent store rejected a write. The write was rolled back."""


class SyncError(DomainError):
    """Cloud sync failed."""


class NotAuthenticatedError(SyncError):
    """Sync backend has no valid credentials."""


def book_not_found(book_id: str) -> str:
    """Return message for missing book."""
    return f"Book {book_id} not found"


def book_name_not_found(name: str) -> str:
    """Return message for a book reference that matches neither id nor name."""
    return f"Book '{name}' not found"


def transaction_not_found(transaction_id: str) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def template_not_found(template_id: str) -> str:
    """Return message for missing template."""
    return f"Template {template_id} not found"


def duplicate_id(kind: str, entity_id: str) -> str:
    """Return message for an add that collides with an existing id."""
    return f"{kind} with id '{entity_id}' already exists"


def default_template_immutable(name: str) -> str:
    """Return message when a system template would be modified."""
    return f"Template '{name}' is a system default and cannot be changed or deleted"