"""Whole-file cloud sync of the full backup.

The remote side holds a single file, ``lekha_backup.json``. A push replaces
it with a fresh full backup; a pull downloads it and restores it over the
local data. There is no merge: the last write wins.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError, wait
from enum import Enum
from pathlib import Path
from typing import Callable, TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt

from lekha.domain.backup import BackupService, RestoreSummary, dumps, loads
from lekha.domain.errors import DomainError, NotAuthenticatedError, SyncError

logger = logging.getLogger(__name__)

BACKUP_FILE_NAME = "lekha_backup.json"
UPLOAD_TIMEOUT_SECONDS = 5

T = TypeVar("T")


class SyncStatus(str, Enum):
    """Progress of the most recent sync operation."""

    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class SyncBackend(ABC):
    """Remote file storage holding named files."""

    @abstractmethod
    def authenticate(self) -> None:
        """Obtain credentials. Raises SyncError if that is not possible."""
        pass

    @abstractmethod
    def is_authenticated(self) -> bool:
        pass

    @abstractmethod
    def upload(self, name: str, content: str) -> None:
        """Create or replace a file. Raises NotAuthenticatedError without credentials."""
        pass

    @abstractmethod
    def download(self, name: str) -> str:
        """Return a file's content. Raises NotAuthenticatedError without credentials."""
        pass


class LocalDirectorySyncBackend(SyncBackend):
    """Sync backend storing files in a local directory, such as a synced folder.

    Authentication creates the directory; until then every transfer fails
    with NotAuthenticatedError.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self._authenticated = False

    def authenticate(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SyncError(f"Cannot use sync directory {self.directory}: {e}") from e
        self._authenticated = True

    def is_authenticated(self) -> bool:
        return self._authenticated

    def _require_auth(self) -> None:
        if not self._authenticated:
            raise NotAuthenticatedError("Not authenticated")

    def upload(self, name: str, content: str) -> None:
        self._require_auth()
        target = self.directory / name
        partial = target.with_name(target.name + ".part")
        try:
            partial.write_text(content, encoding="utf-8")
            partial.replace(target)
        except OSError as e:
            raise SyncError(f"Upload failed: {e}") from e

    def download(self, name: str) -> str:
        self._require_auth()
        target = self.directory / name
        if not target.exists():
            raise SyncError("Backup file not found")
        try:
            return target.read_text(encoding="utf-8")
        except OSError as e:
            raise SyncError(f"Download failed: {e}") from e


class CloudSyncService:
    """Pushes and pulls the full backup through a SyncBackend."""

    def __init__(
        self,
        backup_service: BackupService,
        backend: SyncBackend,
        timeout: float = UPLOAD_TIMEOUT_SECONDS,
    ):
        """Initialize sync service.

        Args:
            backup_service: Produces and restores full backups
            backend: Remote file storage
            timeout: Seconds an upload may take before the push fails
        """
        self.backup_service = backup_service
        self.backend = backend
        self.timeout = timeout
        self.status = SyncStatus.IDLE

    def _reauthenticate(self, retry_state: RetryCallState) -> None:
        logger.info("Sync backend not authenticated, authenticating and retrying once")
        self.backend.authenticate()

    def _with_reauth(self, action: Callable[[], T]) -> T:
        retrying = Retrying(
            stop=stop_after_attempt(2),
            retry=retry_if_exception_type(NotAuthenticatedError),
            before_sleep=self._reauthenticate,
            reraise=True,
        )
        return retrying(action)

    def _upload_with_timeout(self, content: str) -> None:
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self.backend.upload, BACKUP_FILE_NAME, content)
        try:
            future.result(timeout=self.timeout)
        except FutureTimeoutError as e:
            # Running uploads cannot be cancelled
            wait([future], timeout=self.timeout)
            if not future.done():
                logger.warning("Timed out upload is still running and may replace the remote file")
            raise SyncError(f"Sync timed out after {self.timeout:g} seconds") from e
        finally:
            executor.shutdown(wait=False)

    def push(self) -> None:
        """Upload a full backup, replacing the remote file.

        An upload that outlives the timeout keeps running in its worker
        thread and can still replace the remote file after the push failed.

        Raises:
            SyncError: If the upload fails, times out, or authentication
                fails on the single retry
        """
        self.status = SyncStatus.SAVING
        content = dumps(self.backup_service.export_all())
        try:
            self._with_reauth(lambda: self._upload_with_timeout(content))
        except SyncError:
            self.status = SyncStatus.ERROR
            logger.exception("Sync push failed")
            raise
        self.status = SyncStatus.SAVED
        logger.info("Uploaded %s", BACKUP_FILE_NAME)

    def pull(self) -> RestoreSummary:
        """Download the remote backup and restore it over local data.

        Raises:
            SyncError: If the download fails or authentication fails on the
                single retry
            ImportParseError: If the remote file is not a valid backup
        """
        self.status = SyncStatus.SAVING
        try:
            content = self._with_reauth(lambda: self.backend.download(BACKUP_FILE_NAME))
            summary = self.backup_service.restore_all(loads(content), replace_existing=True)
        except DomainError:
            self.status = SyncStatus.ERROR
            logger.exception("Sync pull failed")
            raise
        self.status = SyncStatus.SAVED
        return summary
