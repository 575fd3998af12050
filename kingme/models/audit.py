"""
Audit Models for KingMe

Every mutation of the profile and every backup operation is logged.
This provides:
1. Traceability of what changed the snapshot
2. Debugging information when a sync or restore goes wrong
3. A record of persistence failures (which never roll back state)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Bank accounts
    ACCOUNT_ADDED = "account_added"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_REMOVED = "account_removed"
    PRIMARY_ACCOUNT_CHANGED = "primary_account_changed"

    # Other entities
    ENTITY_ADDED = "entity_added"
    ENTITY_UPDATED = "entity_updated"
    ENTITY_REMOVED = "entity_removed"

    # Wallets and reconciliation
    WALLET_CONNECTED = "wallet_connected"
    WALLET_ALREADY_CONNECTED = "wallet_already_connected"
    WALLET_DISCONNECTED = "wallet_disconnected"
    ASSETS_SYNCED = "assets_synced"
    SYNC_FAILED = "sync_failed"

    # Snapshot lifecycle
    ONBOARDING_COMPLETED = "onboarding_completed"
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_IMPORTED = "backup_imported"
    BACKUP_REJECTED = "backup_rejected"
    STORE_RESET = "store_reset"
    PERSIST_FAILED = "persist_failed"

    # Encrypted remote backup
    REMOTE_BACKUP_SAVED = "remote_backup_saved"
    REMOTE_BACKUP_LOADED = "remote_backup_loaded"
    REMOTE_BACKUP_FAILED = "remote_backup_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'bank_account', 'wallet', 'backup')"
    )
    entity_id: Optional[str] = None

    # For tracking related events (e.g. one sync cycle)
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_json_line(self) -> str:
        """One line of the append-only audit file."""
        return json.dumps(self.to_log_dict(), default=str)


def _short(address: str) -> str:
    return f"{address[:4]}...{address[-4:]}" if len(address) > 8 else address


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_added(account_id, name, is_primary)
        event = AuditEventBuilder.assets_synced(wallets, count, correlation_id)
    """

    @staticmethod
    def account_added(account_id: str, name: str, is_primary: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_ADDED,
            entity_type="bank_account",
            entity_id=account_id,
            description=f"Bank account added: {name}",
            details={"is_primary_income": is_primary},
        )

    @staticmethod
    def primary_changed(account_id: str, previous_ids: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PRIMARY_ACCOUNT_CHANGED,
            entity_type="bank_account",
            entity_id=account_id,
            description="Primary income account changed",
            details={"cleared": previous_ids},
        )

    @staticmethod
    def entity_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
    ) -> AuditEvent:
        verb = event_type.value.rsplit("_", 1)[-1]
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.replace('_', ' ').capitalize()} {verb}",
        )

    @staticmethod
    def wallet_connected(address: str, already_connected: bool = False) -> AuditEvent:
        if already_connected:
            return AuditEvent(
                event_type=AuditEventType.WALLET_ALREADY_CONNECTED,
                severity=AuditSeverity.WARNING,
                entity_type="wallet",
                entity_id=address,
                description=f"Wallet already connected: {_short(address)}",
            )
        return AuditEvent(
            event_type=AuditEventType.WALLET_CONNECTED,
            entity_type="wallet",
            entity_id=address,
            description=f"Wallet connected: {_short(address)}",
        )

    @staticmethod
    def wallet_disconnected(address: str, assets_removed: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WALLET_DISCONNECTED,
            entity_type="wallet",
            entity_id=address,
            description=f"Wallet disconnected: {_short(address)}",
            details={"assets_removed": assets_removed},
        )

    @staticmethod
    def assets_synced(
        kept: int,
        dropped_dust: int,
        replaced: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSETS_SYNCED,
            entity_type="asset",
            correlation_id=correlation_id,
            description=f"Synced {kept} assets, replacing {replaced}",
            details={
                "kept": kept,
                "dropped_dust": dropped_dust,
                "replaced": replaced,
            },
        )

    @staticmethod
    def sync_failed(
        address: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="wallet",
            entity_id=address,
            correlation_id=correlation_id,
            description="Wallet sync failed; store left unchanged",
            error_message=error_message,
        )

    @staticmethod
    def snapshot_event(
        event_type: AuditEventType,
        description: str,
        details: Optional[dict] = None,
        severity: AuditSeverity = AuditSeverity.INFO,
        error_message: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            entity_type="profile",
            description=description,
            details=details or {},
            error_message=error_message,
        )

    @staticmethod
    def remote_backup(
        event_type: AuditEventType,
        owner_address: str,
        error_message: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        failed = event_type == AuditEventType.REMOTE_BACKUP_FAILED
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.ERROR if failed else AuditSeverity.INFO,
            entity_type="backup",
            entity_id=owner_address,
            description=f"Remote backup {event_type.value.rsplit('_', 1)[-1]}: {_short(owner_address)}",
            details=details or {},
            error_message=error_message,
        )

    @staticmethod
    def persist_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSIST_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="profile",
            description="Profile could not be persisted; in-memory state kept",
            error_message=error_message,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
