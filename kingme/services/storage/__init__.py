"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Local snapshots are JSON files; remote backups go to an Upstash blob store.
"""

from kingme.services.storage.interface import (
    AuditStorageInterface,
    BlobStoreInterface,
    CorruptedStorageError,
    ProfileStorageInterface,
    StorageError,
)
from kingme.services.storage.local_file import (
    JsonFileProfileStorage,
    JsonLinesAuditStorage,
)
from kingme.services.storage.blob import UpstashBlobStore, content_id

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BlobStoreInterface",
    "ProfileStorageInterface",
    # Exceptions
    "CorruptedStorageError",
    "StorageError",
    # Implementations
    "JsonFileProfileStorage",
    "JsonLinesAuditStorage",
    "UpstashBlobStore",
    "content_id",
]
