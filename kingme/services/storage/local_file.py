"""
Local File Storage Implementation

DESIGN DECISION: The snapshot is a single JSON document on disk because:
1. The whole profile is small (one user, hundreds of rows at most)
2. It is human-readable and trivially backed up
3. It uses the same camelCase shape as exported backups

TRADEOFFS:
- The whole file is rewritten on every mutation (fine at this size)
- Writes are atomic (temp file + rename), but there is no journal:
  a crash mid-session loses nothing older than the last completed write

Transient OSErrors (locked file, full disk that frees up) are retried a
few times before the failure is reported to the store.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from kingme.models.audit import AuditEvent
from kingme.models.profile import UserProfile
from kingme.services.storage.interface import (
    AuditStorageInterface,
    CorruptedStorageError,
    ProfileStorageInterface,
    StorageError,
)

logger = structlog.get_logger(__name__)


_io_retry = retry(
    retry=retry_if_exception_type(OSError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
    reraise=True,
)


@_io_retry
def _atomic_write(path: Path, text: str) -> None:
    """Write text to path via a temp file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        # Leave no stray temp files behind, then let the caller see the error
        Path(tmp_name).unlink(missing_ok=True)
        raise


@_io_retry
def _append_line(path: Path, line: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(line + "\n")


class JsonFileProfileStorage(ProfileStorageInterface):
    """
    Profile snapshot stored as one JSON file.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def save_profile(self, profile: UserProfile) -> None:
        """Write the snapshot atomically."""
        text = json.dumps(profile.to_json_dict(), indent=2)
        try:
            _atomic_write(self._path, text)
        except OSError as e:
            raise StorageError(f"Failed to save profile to {self._path}: {e}") from e
        logger.debug("profile_saved", path=str(self._path), bytes=len(text))

    def load_profile(self) -> Optional[UserProfile]:
        """Read the snapshot, or None if the file does not exist."""
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read profile from {self._path}: {e}") from e

        try:
            return UserProfile.model_validate_json(text)
        except PydanticValidationError as e:
            raise CorruptedStorageError(
                f"Stored profile at {self._path} is corrupted: {e.error_count()} errors"
            ) from e

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {self._path}: {e}") from e


class JsonLinesAuditStorage(AuditStorageInterface):
    """
    Append-only audit log, one JSON object per line.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path).expanduser()

    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            _append_line(self._path, event.to_json_line())
            return True
        except OSError as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), path=str(self._path))
            return False

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Get recent events, newest first. Malformed lines are skipped."""
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageError(f"Failed to read audit log {self._path}: {e}") from e

        events = []
        for line in lines:
            if not line.strip():
                continue
            try:
                events.append(AuditEvent.model_validate_json(line))
            except PydanticValidationError:
                continue

        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
