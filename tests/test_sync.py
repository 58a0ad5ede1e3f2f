"""Tests for cloud sync of the full backup."""

import json
import logging
import time

import pytest

from lekha.domain.errors import ImportParseError, NotAuthenticatedError, SyncError
from lekha.domain.sync import (
    BACKUP_FILE_NAME,
    CloudSyncService,
    LocalDirectorySyncBackend,
    SyncBackend,
    SyncStatus,
)


class CountingBackend(SyncBackend):
    """Backend that never accepts credentials."""

    def __init__(self):
        self.authenticate_calls = 0
        self.upload_calls = 0

    def authenticate(self):
        self.authenticate_calls += 1

    def is_authenticated(self):
        return False

    def upload(self, name, content):
        self.upload_calls += 1
        raise NotAuthenticatedError("Not authenticated")

    def download(self, name):
        raise NotAuthenticatedError("Not authenticated")


class SlowBackend(LocalDirectorySyncBackend):
    """Backend whose uploads take longer than the sync timeout."""

    def upload(self, name, content):
        time.sleep(0.5)
        super().upload(name, content)


@pytest.fixture
def backend(tmp_path):
    return LocalDirectorySyncBackend(tmp_path / "cloud")


@pytest.fixture
def sync_service(backup_service, backend):
    return CloudSyncService(backup_service, backend)


def test_push_authenticates_on_first_use(sync_service, backend, sample_book):
    """The first upload authenticates and retries once."""
    assert not backend.is_authenticated()

    sync_service.push()

    assert backend.is_authenticated()
    assert sync_service.status == SyncStatus.SAVED
    data = json.loads((backend.directory / BACKUP_FILE_NAME).read_text(encoding="utf-8"))
    assert [b["name"] for b in data["books"]] == ["Household"]


def test_pull_replaces_local_data(sync_service, book_service, temp_db, sample_book):
    """Pulling restores the remote backup over local changes."""
    sync_service.push()
    book_service.create_book("Local only")

    summary = sync_service.pull()

    assert summary.books == 1
    assert [b.name for b in temp_db.list_books()] == ["Household"]
    assert sync_service.status == SyncStatus.SAVED


def test_retry_happens_once(backup_service):
    """A backend that keeps refusing fails after one re-authentication."""
    backend = CountingBackend()
    service = CloudSyncService(backup_service, backend)

    with pytest.raises(NotAuthenticatedError):
        service.push()

    assert backend.upload_calls == 2
    assert backend.authenticate_calls == 1
    assert service.status == SyncStatus.ERROR


def test_upload_timeout(backup_service, tmp_path, caplog):
    """Slow uploads fail with a timeout error and a warning that they may still land."""
    backend = SlowBackend(tmp_path / "slow")
    backend.authenticate()
    service = CloudSyncService(backup_service, backend, timeout=0.05)
    caplog.set_level(logging.WARNING, logger="lekha.domain.sync")

    with pytest.raises(SyncError, match="timed out"):
        service.push()

    assert service.status == SyncStatus.ERROR
    assert "still running" in caplog.text


def test_pull_without_remote_file(sync_service):
    """Pulling before any push reports the missing file."""
    with pytest.raises(SyncError, match="Backup file not found"):
        sync_service.pull()

    assert sync_service.status == SyncStatus.ERROR


def test_pull_corrupt_remote_file(sync_service, backend, temp_db, sample_book):
    """A corrupt remote file leaves local data alone."""
    backend.authenticate()
    (backend.directory / BACKUP_FILE_NAME).write_text("{broken", encoding="utf-8")

    with pytest.raises(ImportParseError):
        sync_service.pull()

    assert [b.name for b in temp_db.list_books()] == ["Household"]
    assert sync_service.status == SyncStatus.ERROR


def test_local_backend_requires_authentication(backend):
    """Transfers fail until the backend is authenticated."""
    with pytest.raises(NotAuthenticatedError):
        backend.upload("x.json", "{}")
    with pytest.raises(NotAuthenticatedError):
        backend.download("x.json")
