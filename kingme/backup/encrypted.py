"""
Encrypted Backup Service

Stores the profile remotely, encrypted with a key only the wallet owner
can reproduce.

How the key is derived:
1. The wallet signs a fixed message that includes its own address
2. SHA-256 of the signature becomes a Fernet key (urlsafe base64)
3. The same wallet signing the same message later yields the same key

DESIGN DECISION: The key is never stored anywhere. Losing the wallet means
losing the backup; that is the point.

Each operation walks an explicit state machine:

    idle -> signing -> uploading | downloading -> done | error

Only one operation may run at a time. The busy flag is cleared on every
exit path, and any failure, expected or not, leaves the machine in error.
"""

import base64
import hashlib
from enum import Enum
from typing import TYPE_CHECKING, Optional, Protocol

import structlog
from cryptography.fernet import Fernet, InvalidToken

from kingme.audit import AuditLogger
from kingme.backup.codec import BackupCodec
from kingme.errors import (
    BackupInProgressError,
    DecryptionFailed,
    NoBackupFound,
    SignatureUnavailable,
)
from kingme.models.audit import AuditEventBuilder, AuditEventType
from kingme.models.profile import UserProfile
from kingme.services.storage import BlobStoreInterface

if TYPE_CHECKING:
    from kingme.store.profile_store import ProfileStore

logger = structlog.get_logger(__name__)

SIGN_PROMPT = "Sign this message to prove you own this wallet"
KEY_PREFIX = "backup:"


class Signer(Protocol):
    """Whatever wallet connection is active. Signs arbitrary bytes."""

    async def sign(self, message: bytes) -> bytes:
        ...


class BackupState(str, Enum):
    IDLE = "idle"
    SIGNING = "signing"
    UPLOADING = "uploading"
    DOWNLOADING = "downloading"
    DONE = "done"
    ERROR = "error"


def sign_message(owner_address: str) -> bytes:
    """The exact bytes the wallet is asked to sign."""
    return f"{SIGN_PROMPT}\n\nWallet: {owner_address}".encode("utf-8")


def derive_key(signature: bytes) -> bytes:
    """Fernet key from a wallet signature."""
    return base64.urlsafe_b64encode(hashlib.sha256(signature).digest())


def backup_key(owner_address: str) -> str:
    return f"{KEY_PREFIX}{owner_address}"


class EncryptedBackupService:
    """
    Save and load wallet-encrypted profile backups.

    Usage:
        service = EncryptedBackupService(UpstashBlobStore())
        await service.save_backup(store.profile, signer, address)
        await service.restore_profile(store, address, signer)
    """

    def __init__(
        self,
        blob_store: BlobStoreInterface,
        codec: Optional[BackupCodec] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._blob_store = blob_store
        self._codec = codec or BackupCodec()
        self._audit_logger = audit_logger
        self._state = BackupState.IDLE
        self._busy = False
        self.last_error: Optional[str] = None

    @property
    def state(self) -> BackupState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._busy

    def _transition(self, state: BackupState, owner_address: str) -> None:
        logger.debug("backup_state", state=state.value, owner=owner_address)
        self._state = state

    def _acquire(self) -> None:
        if self._busy:
            raise BackupInProgressError("A backup operation is already in progress")
        self._busy = True
        self.last_error = None

    def _fail(self, owner_address: str, error: Exception) -> None:
        self._transition(BackupState.ERROR, owner_address)
        self.last_error = str(error)
        logger.warning(
            "remote_backup_failed",
            owner=owner_address,
            error_type=type(error).__name__,
            error=str(error),
        )
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.remote_backup(
                AuditEventType.REMOTE_BACKUP_FAILED,
                owner_address,
                error_message=str(error),
            ))

    async def _cipher(self, signer: Signer, owner_address: str) -> Fernet:
        self._transition(BackupState.SIGNING, owner_address)
        try:
            signature = await signer.sign(sign_message(owner_address))
        except Exception as e:
            raise SignatureUnavailable(f"Wallet did not sign: {e}") from e
        if not isinstance(signature, (bytes, bytearray)):
            raise SignatureUnavailable(
                f"Wallet returned a {type(signature).__name__} signature, expected bytes"
            )
        if not signature:
            raise SignatureUnavailable("Wallet returned an empty signature")
        return Fernet(derive_key(bytes(signature)))

    async def save_backup(
        self,
        profile: UserProfile,
        signer: Signer,
        owner_address: str,
    ) -> str:
        """
        Encrypt and upload the profile, overwriting any earlier backup.

        Returns the blob store's identifier for the upload.

        Raises:
            BackupInProgressError: If another operation is running.
            SignatureUnavailable: If the wallet refuses to sign.
            ExternalServiceError: If the upload fails.
        """
        self._acquire()
        try:
            cipher = await self._cipher(signer, owner_address)
            plaintext = self._codec.export_backup(profile)
            token = cipher.encrypt(plaintext.encode("utf-8")).decode("ascii")

            self._transition(BackupState.UPLOADING, owner_address)
            identifier = await self._blob_store.put(backup_key(owner_address), token)

            self._transition(BackupState.DONE, owner_address)
            if self._audit_logger:
                self._audit_logger.log(AuditEventBuilder.remote_backup(
                    AuditEventType.REMOTE_BACKUP_SAVED,
                    owner_address,
                    details={"id": identifier, "bytes": len(token)},
                ))
            return identifier
        except Exception as e:
            self._fail(owner_address, e)
            raise
        finally:
            self._busy = False

    async def load_backup(self, owner_address: str, signer: Signer) -> UserProfile:
        """
        Download and decrypt the backup for a wallet.

        Raises:
            BackupInProgressError: If another operation is running.
            SignatureUnavailable: If the wallet refuses to sign.
            NoBackupFound: If nothing is stored for the wallet.
            DecryptionFailed: If the stored backup was encrypted by a
                different key.
            ExternalServiceError: If the download fails.
        """
        self._acquire()
        try:
            cipher = await self._cipher(signer, owner_address)

            self._transition(BackupState.DOWNLOADING, owner_address)
            token = await self._blob_store.get(backup_key(owner_address))
            if not token:
                raise NoBackupFound(f"No backup found for wallet {owner_address}")

            # Some writers stored the token JSON-quoted
            token = token.strip().strip('"')
            try:
                plaintext = cipher.decrypt(token.encode("ascii"))
            except (InvalidToken, UnicodeEncodeError) as e:
                raise DecryptionFailed(
                    "Backup could not be decrypted with this wallet's signature"
                ) from e

            profile = self._codec.import_backup(plaintext.decode("utf-8"))

            self._transition(BackupState.DONE, owner_address)
            if self._audit_logger:
                self._audit_logger.log(AuditEventBuilder.remote_backup(
                    AuditEventType.REMOTE_BACKUP_LOADED,
                    owner_address,
                ))
            return profile
        except Exception as e:
            self._fail(owner_address, e)
            raise
        finally:
            self._busy = False

    async def restore_profile(
        self,
        store: "ProfileStore",
        owner_address: str,
        signer: Signer,
    ) -> UserProfile:
        """Load the backup and replace the store's snapshot with it. Last write wins."""
        profile = await self.load_backup(owner_address, signer)
        store.replace_profile(profile)
        logger.info("profile_restored", owner=owner_address)
        return store.profile
