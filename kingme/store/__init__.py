"""
State store: the profile container and the asset reconciler.
"""

from kingme.store.profile_store import ProfileStore
from kingme.store.reconciler import (
    AssetReconciler,
    drop_dust,
    merge_assets,
    partition_assets,
    strip_wallet_assets,
)

__all__ = [
    "ProfileStore",
    "AssetReconciler",
    "drop_dust",
    "merge_assets",
    "partition_assets",
    "strip_wallet_assets",
]
