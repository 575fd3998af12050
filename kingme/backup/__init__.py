"""
Backup subsystem: plaintext codec and wallet-encrypted remote backups.
"""

from kingme.backup.codec import (
    BACKUP_VERSION,
    BackupCodec,
    BackupInfo,
    backup_filename,
)
from kingme.backup.encrypted import (
    BackupState,
    EncryptedBackupService,
    Signer,
    backup_key,
    derive_key,
    sign_message,
)

__all__ = [
    "BACKUP_VERSION",
    "BackupCodec",
    "BackupInfo",
    "backup_filename",
    "BackupState",
    "EncryptedBackupService",
    "Signer",
    "backup_key",
    "derive_key",
    "sign_message",
]
