"""Shared pytest fixtures for lekha tests."""

import tempfile
import os
from pathlib import Path
import pytest

from lekha.config import get_settings
from lekha.database.factories import create_sqlite_database
from lekha.domain.backup import BackupService
from lekha.domain.book import BookService
from lekha.domain.csv_import import CSVImportService
from lekha.domain.report import ReportService
from lekha.domain.template import TemplateService
from lekha.domain.transaction import TransactionService


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point state and sync locations at a temporary directory."""
    monkeypatch.setenv("LEKHA_STATE_PATH", str(tmp_path / "state.json"))
    monkeypatch.setenv("LEKHA_SYNC_DIR", str(tmp_path / "cloud"))
    monkeypatch.setenv("LEKHA_USER", "tester")
    monkeypatch.delenv("LEKHA_DB_PATH", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def book_service(temp_db):
    """Create a BookService with a temporary database."""
    return BookService(temp_db)


@pytest.fixture
def transaction_service(temp_db):
    """Create a TransactionService with a temporary database."""
    return TransactionService(temp_db, performed_by="tester")


@pytest.fixture
def template_service(temp_db):
    """Create a TemplateService with seeded system templates."""
    service = TemplateService(temp_db)
    service.ensure_default_templates()
    return service


@pytest.fixture
def csv_import_service(temp_db):
    """Create a CSVImportService with a temporary database."""
    return CSVImportService(temp_db, performed_by="tester")


@pytest.fixture
def report_service(temp_db):
    """Create a ReportService with a temporary database."""
    return ReportService(temp_db)


@pytest.fixture
def backup_service(temp_db):
    """Create a BackupService with a temporary database."""
    return BackupService(temp_db, performed_by="tester")


@pytest.fixture
def sample_book(book_service):
    """Create a sample book with the default fields."""
    return book_service.create_book(name="Household", currency="INR")


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def write_csv(tmp_path):
    """Write CSV text to a temporary file and return its path."""

    def _write(text: str, name: str = "statement.csv") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
