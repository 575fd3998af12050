"""
Error kinds raised by the KingMe core.

All of them are recoverable at the boundary: the calling layer decides
whether to retry or report. None of them should terminate the process.
"""

from typing import Optional


class KingMeError(Exception):
    """Base exception for the KingMe core."""
    pass


class ValidationError(KingMeError):
    """Input failed structural or format validation."""
    pass


class MalformedBackup(ValidationError):
    """Backup text is not a well-formed KingMe backup."""
    pass


class NotFoundError(KingMeError):
    """A referenced entity does not exist."""
    pass


class DuplicateError(KingMeError):
    """Attempted to add an entity that already exists."""
    pass


class ExternalServiceError(KingMeError):
    """A data provider or blob store call failed."""

    def __init__(
        self,
        service: str,
        message: str,
        address: Optional[str] = None,
    ):
        self.service = service
        self.address = address
        context = f" [{address}]" if address else ""
        super().__init__(f"{service}{context}: {message}")


class CryptoError(KingMeError):
    """Base exception for signing and encryption failures."""
    pass


class SignatureUnavailable(CryptoError):
    """The signer refused or failed to produce a signature."""
    pass


class DecryptionFailed(CryptoError):
    """Ciphertext exists but the derived key does not open it."""
    pass


class NoBackupFound(KingMeError):
    """No encrypted backup is stored for the address."""
    pass


class BackupInProgressError(KingMeError):
    """Another save or load operation is already running."""
    pass
