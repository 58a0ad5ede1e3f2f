"""Domain layer for lekha application."""

import importlib

# Services load lazily: lekha.database imports entities from this package
_SERVICES = {
    "BookService": "lekha.domain.book",
    "TransactionService": "lekha.domain.transaction",
    "TemplateService": "lekha.domain.template",
    "CSVImportService": "lekha.domain.csv_import",
    "AuditService": "lekha.domain.audit",
    "ReportService": "lekha.domain.report",
    "BackupService": "lekha.domain.backup",
    "CloudSyncService": "lekha.domain.sync",
}

__all__ = list(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        return getattr(importlib.import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
