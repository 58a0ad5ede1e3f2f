"""Application state shared by CLI commands.

Only the fields listed in ``PERSISTED_FIELDS`` are written to disk; the rest
lives for one session. The state object is created by the CLI entry point
and handed to commands through the click context.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from lekha.domain.errors import StorageError
from lekha.domain.sync import SyncStatus

logger = logging.getLogger(__name__)

PERSISTED_FIELDS = ("active_book_id", "auto_sync_enabled", "current_user")


@dataclass
class AppState:
    """Current book, audit user and sync progress."""

    # persisted
    active_book_id: Optional[str] = None
    auto_sync_enabled: bool = False
    current_user: Optional[str] = None
    # session only
    sync_status: SyncStatus = SyncStatus.IDLE

    def to_persisted(self) -> dict[str, Any]:
        """Return the part of the state that survives a restart."""
        return {name: getattr(self, name) for name in PERSISTED_FIELDS}

    @classmethod
    def from_persisted(cls, data: dict[str, Any]) -> "AppState":
        return cls(
            active_book_id=data.get("active_book_id"),
            auto_sync_enabled=bool(data.get("auto_sync_enabled", False)),
            current_user=data.get("current_user"),
        )


class AppStateStore:
    """Loads and saves the persisted part of AppState as a JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> AppState:
        """Read the state file. A missing or unreadable file gives defaults."""
        if not self.path.exists():
            return AppState()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, e)
            return AppState()
        if not isinstance(data, dict):
            logger.warning("Ignoring state file %s: not a JSON object", self.path)
            return AppState()
        return AppState.from_persisted(data)

    def save(self, state: AppState) -> None:
        """Write the persisted fields of ``state``.

        Raises:
            StorageError: If the file cannot be written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(state.to_persisted(), indent=2), encoding="utf-8")
        except OSError as e:
            logger.exception("Failed to save state to %s", self.path)
            raise StorageError(f"Could not save state: {e}") from e
