"""Services package.

Wallet sync lives in kingme.services.sync and is imported from there;
it depends on the audit layer, which itself depends on storage.
"""

from kingme.services.storage import (
    AuditStorageInterface,
    BlobStoreInterface,
    CorruptedStorageError,
    JsonFileProfileStorage,
    JsonLinesAuditStorage,
    ProfileStorageInterface,
    StorageError,
    UpstashBlobStore,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "BlobStoreInterface",
    "CorruptedStorageError",
    "JsonFileProfileStorage",
    "JsonLinesAuditStorage",
    "ProfileStorageInterface",
    "StorageError",
    "UpstashBlobStore",
]
