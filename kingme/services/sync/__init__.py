"""
Wallet synchronization: data provider interface, price table, Helius
adapter, and the fan-out sync service.
"""

from kingme.services.sync.provider import (
    LAMPORTS_PER_SOL,
    TokenAccountRecord,
    WalletDataProvider,
)
from kingme.services.sync.prices import (
    DEFAULT_PRICES,
    SKR_MINT,
    SOL_MINT,
    USDC_MINT,
    PriceTable,
    TokenPrice,
)
from kingme.services.sync.helius import HeliusDataProvider
from kingme.services.sync.service import WalletSyncService

__all__ = [
    "LAMPORTS_PER_SOL",
    "TokenAccountRecord",
    "WalletDataProvider",
    "DEFAULT_PRICES",
    "SKR_MINT",
    "SOL_MINT",
    "USDC_MINT",
    "PriceTable",
    "TokenPrice",
    "HeliusDataProvider",
    "WalletSyncService",
]
