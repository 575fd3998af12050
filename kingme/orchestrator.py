"""
Component Factory for KingMe

Builds the store and its collaborators once, at process start, and hands
them out. Nothing in the core reaches for a global store.

DESIGN DECISION: Every external collaborator is optional.
- No storage configured: the store runs in memory
- No Helius key: wallet sync is unavailable
- No Upstash credentials: encrypted backups are unavailable
The core keeps working either way; callers check for None.
"""

from typing import NamedTuple, Optional

import structlog

from kingme.audit import AuditLogger
from kingme.backup import BackupCodec, EncryptedBackupService
from kingme.config import get_settings
from kingme.services.storage import (
    JsonFileProfileStorage,
    JsonLinesAuditStorage,
    StorageError,
    UpstashBlobStore,
)
from kingme.services.sync import HeliusDataProvider, PriceTable, WalletSyncService
from kingme.store import ProfileStore

logger = structlog.get_logger(__name__)


class AppComponents(NamedTuple):
    store: ProfileStore
    audit_logger: AuditLogger
    sync_service: Optional[WalletSyncService]
    backup_service: Optional[EncryptedBackupService]


def create_app_components(
    use_storage: bool = True,
    use_network: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to persist the profile and audit log to disk.
                    Set to False for an in-memory store.
        use_network: Whether to build the Helius and Upstash adapters.

    Returns:
        AppComponents(store, audit_logger, sync_service, backup_service)
    """
    settings = get_settings()
    store_settings = settings.store
    codec = BackupCodec()

    profile_storage = None
    audit_logger = AuditLogger()  # Local-only logging
    if use_storage:
        profile_storage = JsonFileProfileStorage(store_settings.profile_path)
        if store_settings.audit_log_path:
            audit_logger = AuditLogger(JsonLinesAuditStorage(store_settings.audit_log_path))

    store = ProfileStore(
        storage=profile_storage,
        audit_logger=audit_logger,
        settings=store_settings,
        materiality_threshold=settings.sync.materiality_threshold_usd,
        freedom_policy=settings.freedom,
        codec=codec,
    )

    if profile_storage is not None:
        try:
            store.load()
        except StorageError as e:
            # Keep the unreadable file intact; run in memory instead of overwriting it
            logger.error("profile_load_failed", error=str(e), path=str(profile_storage.path))
            store = ProfileStore(
                audit_logger=audit_logger,
                settings=store_settings,
                materiality_threshold=settings.sync.materiality_threshold_usd,
                freedom_policy=settings.freedom,
                codec=codec,
            )

    sync_service = None
    backup_service = None
    if use_network:
        try:
            sync_service = WalletSyncService(
                store,
                HeliusDataProvider(),
                prices=PriceTable(),
                audit_logger=audit_logger,
            )
        except Exception as e:
            # Helius not configured - continue without sync
            logger.warning("wallet_sync_unavailable", error=str(e))

        try:
            backup_service = EncryptedBackupService(
                UpstashBlobStore(),
                codec=codec,
                audit_logger=audit_logger,
            )
        except Exception as e:
            # Upstash not configured - continue without remote backups
            logger.warning("remote_backup_unavailable", error=str(e))

    return AppComponents(
        store=store,
        audit_logger=audit_logger,
        sync_service=sync_service,
        backup_service=backup_service,
    )
