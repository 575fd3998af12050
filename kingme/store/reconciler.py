"""
Asset Reconciler

Merges wallet-synchronized holdings into the asset list.

DESIGN DECISION: A sync result is the complete truth for the crypto/defi
partition at sync time. We replace that partition wholesale instead of
diffing it, which means:
1. Tokens that left the wallet disappear (no stale-balance ghosts)
2. Running the same merge twice yields the same list (idempotent)
3. Manually entered assets (real estate, stocks, ...) are never touched,
   since they have no external source of truth

The pure helpers below do the list work; AssetReconciler only adds the
commit into the store and the audit trail.
"""

from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Optional
from uuid import UUID

import structlog

from kingme.audit import AuditLogger
from kingme.errors import ValidationError
from kingme.models.audit import AuditEventBuilder
from kingme.models.profile import Asset

if TYPE_CHECKING:
    from kingme.store.profile_store import ProfileStore

logger = structlog.get_logger(__name__)


def partition_assets(assets: Iterable[Asset]) -> tuple[list[Asset], list[Asset]]:
    """Split into (synced crypto/defi, everything else), preserving order."""
    synced, others = [], []
    for asset in assets:
        (synced if asset.is_synced_type else others).append(asset)
    return synced, others


def drop_dust(assets: Iterable[Asset], threshold: Decimal) -> tuple[list[Asset], int]:
    """Remove holdings worth less than the threshold. Returns (kept, dropped count)."""
    kept, dropped = [], 0
    for asset in assets:
        if asset.value < threshold:
            dropped += 1
            continue
        kept.append(asset)
    return kept, dropped


def merge_assets(others: list[Asset], synced: list[Asset]) -> list[Asset]:
    """
    Manual assets first, then the synced batch in wallet order.

    A repeated id in the batch keeps its first occurrence.
    """
    seen = set()
    merged = list(others)
    for asset in synced:
        if asset.id in seen:
            continue
        seen.add(asset.id)
        merged.append(asset)
    return merged


def strip_wallet_assets(assets: Iterable[Asset], address: str) -> tuple[list[Asset], int]:
    """
    Drop crypto/defi assets owned by address.

    Assets with no wallet address (entered by hand, or from old backups)
    are kept; they cannot be attributed to any wallet.
    """
    kept, removed = [], 0
    for asset in assets:
        if asset.is_synced_type and asset.wallet_address == address:
            removed += 1
            continue
        kept.append(asset)
    return kept, removed


def _check_batch(new_assets: list[Asset]) -> None:
    for asset in new_assets:
        if not asset.is_synced_type:
            raise ValidationError(
                f"Synced asset {asset.id} has type {asset.type.value}; only crypto/defi can be merged"
            )
        if not asset.wallet_address:
            raise ValidationError(f"Synced asset {asset.id} is missing its wallet address")


class AssetReconciler:
    """
    Applies sync results and wallet disconnects to a ProfileStore.

    Owned by the store; every change goes through store.replace_assets so
    the whole partition swap is one commit.
    """

    def __init__(
        self,
        store: "ProfileStore",
        materiality_threshold: Decimal,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._threshold = materiality_threshold
        self._audit_logger = audit_logger

    @property
    def materiality_threshold(self) -> Decimal:
        return self._threshold

    def merge_synced_assets(
        self,
        new_assets: list[Asset],
        correlation_id: Optional[UUID] = None,
    ) -> list[Asset]:
        """
        Replace the crypto/defi partition with new_assets.

        Dust below the materiality threshold is dropped first.
        Returns the resulting full asset list.

        Raises:
            ValidationError: If the batch holds a non-synced type or an
                asset without a wallet address.
        """
        _check_batch(new_assets)

        current = self._store.profile.assets
        previous_synced, others = partition_assets(current)
        kept, dropped = drop_dust(new_assets, self._threshold)
        merged = merge_assets(others, kept)

        self._store.replace_assets(merged, mark_synced=True)

        logger.info(
            "synced_assets_merged",
            kept=len(kept),
            dropped_dust=dropped,
            replaced=len(previous_synced),
            manual=len(others),
        )
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.assets_synced(
                kept=len(kept),
                dropped_dust=dropped,
                replaced=len(previous_synced),
                correlation_id=correlation_id,
            ))
        return merged

    def remove_assets_for_wallet(self, address: str) -> int:
        """Remove every synced asset owned by address. Returns how many were removed."""
        remaining, removed = strip_wallet_assets(self._store.profile.assets, address)
        if removed:
            self._store.replace_assets(remaining)
        logger.info("wallet_assets_removed", address=address, removed=removed)
        return removed
