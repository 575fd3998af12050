"""
Backup Codec

Plaintext export/import of the whole profile.

Format (forward compatible, camelCase keys):

    {
      "version": "1.0.0",
      "exportedAt": "2025-01-31T12:00:00.000Z",
      "profile": { ...UserProfile... }
    }

DESIGN DECISION: Import is lenient about what is missing and strict about
what is present. Absent collections default to empty and unknown keys are
ignored, so backups from older or newer app versions load. A field that is
present but structurally wrong rejects the whole backup; we never import
half a profile.
"""

import base64
import binascii
import json
from datetime import datetime
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from kingme.errors import MalformedBackup
from kingme.models.profile import UserProfile, utc_now

logger = structlog.get_logger(__name__)

BACKUP_VERSION = "1.0.0"


class BackupInfo(BaseModel):
    """Result of validating backup text without importing it."""

    valid: bool
    error: Optional[str] = None
    version: Optional[str] = None
    exported_at: Optional[str] = None
    data_size: Optional[int] = Field(
        default=None,
        description="Size of the backup text in bytes (UTF-8)"
    )


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def backup_filename(now: Optional[datetime] = None) -> str:
    """kingme-backup-YYYY-MM-DD.json"""
    return f"kingme-backup-{(now or utc_now()).date().isoformat()}.json"


class BackupCodec:
    """
    Encodes a UserProfile into backup text and back.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock

    def export_backup(self, profile: UserProfile) -> str:
        """Pretty-printed backup envelope."""
        envelope = {
            "version": BACKUP_VERSION,
            "exportedAt": _iso(self._clock()),
            "profile": profile.to_json_dict(),
        }
        return json.dumps(envelope, indent=2)

    def _envelope(self, text: str) -> dict[str, Any]:
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            raise MalformedBackup("Invalid backup file: not valid JSON") from e

        if not isinstance(data, dict):
            raise MalformedBackup("Invalid backup file: expected a JSON object")
        if "version" not in data:
            raise MalformedBackup("Invalid backup file: missing version")
        if not isinstance(data.get("profile"), dict):
            raise MalformedBackup("Invalid backup file: missing profile data")
        return data

    def import_backup(self, text: str) -> UserProfile:
        """
        Parse backup text into a UserProfile.

        Raises:
            MalformedBackup: If the text is not a well-formed backup.
        """
        data = self._envelope(text)
        try:
            profile = UserProfile.model_validate(data["profile"])
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise MalformedBackup(
                f"Invalid backup file: corrupted data at {location}: {first['msg']}"
            ) from e

        logger.info(
            "backup_decoded",
            version=data["version"],
            exported_at=data.get("exportedAt"),
        )
        return profile

    def validate_backup(self, text: str) -> BackupInfo:
        """Check backup text without raising."""
        try:
            data = self._envelope(text)
            UserProfile.model_validate(data["profile"])
        except MalformedBackup as e:
            return BackupInfo(valid=False, error=str(e))
        except PydanticValidationError:
            return BackupInfo(valid=False, error="Corrupted profile data")

        # exportedAt is informational; other writers may send epoch numbers
        exported_at = data.get("exportedAt")
        return BackupInfo(
            valid=True,
            version=str(data["version"]),
            exported_at=str(exported_at) if exported_at is not None else None,
            data_size=len(text.encode("utf-8")),
        )

    def generate_backup_code(self, profile: UserProfile) -> str:
        """Backup text as a single base64 string (clipboard friendly)."""
        return base64.b64encode(self.export_backup(profile).encode("utf-8")).decode("ascii")

    def restore_from_backup_code(self, code: str) -> UserProfile:
        """
        Accepts a base64 backup code or raw backup JSON.

        Raises:
            MalformedBackup: If neither form decodes to a valid backup.
        """
        code = code.strip()
        try:
            text = base64.b64decode(code, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError, ValueError):
            text = code

        try:
            return self.import_backup(text)
        except MalformedBackup as e:
            raise MalformedBackup(f"Invalid backup code: {e}") from e
