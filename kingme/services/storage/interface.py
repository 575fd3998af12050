"""
Abstract Storage Interfaces

DESIGN DECISION: The store never touches the filesystem or network
directly. It talks to these interfaces, which allows us to:
1. Swap local JSON files for platform storage later
2. Use in-memory storage for testing
3. Keep the invariant logic decoupled from storage implementation

Profile and audit storage are synchronous: a store mutation runs to
completion, including its persistence write, before the next one starts.
The remote blob store is asynchronous because it sits behind the network.
"""

from abc import ABC, abstractmethod
from typing import Optional

from kingme.models.audit import AuditEvent
from kingme.models.profile import UserProfile


class ProfileStorageInterface(ABC):
    """
    Local durable storage for the profile snapshot.

    One snapshot per installation; every save overwrites the last.
    """

    @abstractmethod
    def save_profile(self, profile: UserProfile) -> None:
        """
        Persist the full snapshot.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def load_profile(self) -> Optional[UserProfile]:
        """
        Read the persisted snapshot.

        Returns:
            The snapshot, or None if nothing has been saved yet

        Raises:
            StorageError: If the stored data cannot be read or parsed
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Delete the persisted snapshot."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class BlobStoreInterface(ABC):
    """
    Key-addressed remote blob store for encrypted backups.

    Keys are derived from the owning wallet address, so each wallet has
    exactly one slot and later writes overwrite earlier ones.
    """

    @abstractmethod
    async def put(self, key: str, ciphertext: str) -> str:
        """
        Store ciphertext under key.

        Returns:
            An opaque identifier for the stored content

        Raises:
            ExternalServiceError: If the store is unreachable or rejects the write
        """
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Fetch ciphertext for key.

        Returns:
            The ciphertext, or None if nothing is stored under key

        Raises:
            ExternalServiceError: If the store is unreachable
        """
        pass


class StorageError(Exception):
    """Base exception for local storage operations."""
    pass


class CorruptedStorageError(StorageError):
    """Stored data exists but cannot be parsed."""
    pass
