"""Tests for persisted application state."""

import pytest

from lekha.domain.errors import StorageError
from lekha.domain.state import AppState, AppStateStore
from lekha.domain.sync import SyncStatus


def test_missing_file_gives_defaults(tmp_path):
    """No state file means no active book and auto sync off."""
    state = AppStateStore(tmp_path / "state.json").load()

    assert state.active_book_id is None
    assert state.auto_sync_enabled is False
    assert state.sync_status == SyncStatus.IDLE


def test_roundtrip_persists_selected_fields(tmp_path):
    """Only the persisted fields survive a save and load."""
    store = AppStateStore(tmp_path / "nested" / "state.json")
    state = AppState(active_book_id="b1", auto_sync_enabled=True, current_user="asha")
    state.sync_status = SyncStatus.SAVED

    store.save(state)
    loaded = store.load()

    assert loaded.to_persisted() == {
        "active_book_id": "b1",
        "auto_sync_enabled": True,
        "current_user": "asha",
    }
    assert loaded.sync_status == SyncStatus.IDLE


@pytest.mark.parametrize("content", ["{oops", "[1, 2]"])
def test_unreadable_file_gives_defaults(tmp_path, content):
    """Corrupt files are ignored."""
    path = tmp_path / "state.json"
    path.write_text(content, encoding="utf-8")

    assert AppStateStore(path).load() == AppState()


def test_save_failure_raises_storage_error(tmp_path):
    """Write failures surface as StorageError."""
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(StorageError):
        AppStateStore(blocker / "state.json").save(AppState())
