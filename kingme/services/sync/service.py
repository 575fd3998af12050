"""
Wallet Sync Service

Fans out one provider query per connected wallet, waits for every wallet
to finish, then hands the combined batch to the Asset Reconciler.

CRITICAL: All-or-nothing. If any wallet fails, nothing is merged and the
store is left exactly as it was. Partial results from the wallets that
succeeded are discarded, since merging them would wipe the failed
wallet's holdings from the crypto partition.

Ordering: the batch is the concatenation of per-wallet results in the
order wallets were connected. Nothing is sorted by value.
"""

import asyncio
from collections import OrderedDict
from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from uuid import UUID

import structlog

from kingme.audit import AuditLogger, create_correlation_id
from kingme.errors import ExternalServiceError
from kingme.models.audit import AuditEventBuilder
from kingme.models.profile import Asset, AssetType, CryptoMetadata
from kingme.services.sync.prices import SOL_MINT, PriceTable
from kingme.services.sync.provider import (
    LAMPORTS_PER_SOL,
    TokenAccountRecord,
    WalletDataProvider,
)

if TYPE_CHECKING:
    from kingme.store.profile_store import ProfileStore

logger = structlog.get_logger(__name__)


def _whole_tokens(record: TokenAccountRecord) -> Decimal:
    return Decimal(record.amount).scaleb(-record.decimals)


class WalletSyncService:
    """
    Turns on-chain holdings into crypto assets and merges them.

    Usage:
        service = WalletSyncService(store, HeliusDataProvider())
        assets = await service.sync_wallets()
    """

    def __init__(
        self,
        store: "ProfileStore",
        provider: WalletDataProvider,
        prices: Optional[PriceTable] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._provider = provider
        self._prices = prices or PriceTable()
        self._audit_logger = audit_logger

    def _native_asset(self, address: str, lamports: int) -> Optional[Asset]:
        price = self._prices.native
        if lamports <= 0 or price is None:
            return None
        quantity = Decimal(lamports) / Decimal(LAMPORTS_PER_SOL)
        return Asset(
            id=f"{address}-SOL",
            type=AssetType.CRYPTO,
            name=price.name,
            value=quantity * price.price_usd,
            metadata=CryptoMetadata(
                token_mint=SOL_MINT,
                symbol=price.symbol,
                decimals=9,
                quantity=quantity,
                wallet_address=address,
            ),
        )

    def _token_assets(self, address: str, records: list[TokenAccountRecord]) -> list[Asset]:
        """
        One asset per priced mint.

        A wallet can hold several accounts for the same mint; their
        balances are summed so the asset id stays unique.
        """
        holdings: "OrderedDict[str, tuple[Decimal, int]]" = OrderedDict()
        for record in records:
            if record.mint not in self._prices or record.amount == 0:
                continue
            quantity, _ = holdings.get(record.mint, (Decimal("0"), record.decimals))
            holdings[record.mint] = (quantity + _whole_tokens(record), record.decimals)

        assets = []
        for mint, (quantity, decimals) in holdings.items():
            price = self._prices.get(mint)
            assets.append(Asset(
                id=f"{address}-{mint}",
                type=AssetType.CRYPTO,
                name=price.symbol,
                value=quantity * price.price_usd,
                metadata=CryptoMetadata(
                    token_mint=mint,
                    symbol=price.symbol,
                    decimals=decimals,
                    quantity=quantity,
                    wallet_address=address,
                ),
            ))
        return assets

    async def fetch_wallet_assets(self, address: str) -> list[Asset]:
        """
        Holdings of one wallet as assets: native SOL first, then tokens.

        Raises:
            ExternalServiceError: If the provider fails, with the address.
        """
        try:
            records, lamports = await asyncio.gather(
                self._provider.get_token_accounts(address),
                self._provider.get_native_balance(address),
            )
        except ExternalServiceError:
            raise
        except Exception as e:
            raise ExternalServiceError("wallet_provider", str(e), address=address) from e

        assets = []
        native = self._native_asset(address, lamports)
        if native is not None:
            assets.append(native)
        assets.extend(self._token_assets(address, records))
        return assets

    def _report_failure(self, error: ExternalServiceError, correlation_id: UUID) -> None:
        logger.error(
            "wallet_sync_failed",
            address=error.address,
            service=error.service,
            error=str(error),
        )
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.sync_failed(
                error.address, str(error), correlation_id
            ))
            self._audit_logger.log_external_service_error(
                error.service, str(error), correlation_id
            )

    async def sync_wallets(self) -> list[Asset]:
        """
        Sync every connected wallet and merge the result into the store.

        With no wallets connected nothing is fetched and the store is not
        touched. If the connected wallets change while the fetch is in flight,
        the batch is discarded and the store is left as it now is.
        Returns the resulting asset list.

        Raises:
            ExternalServiceError: If any wallet fails. The error names the
                first failing wallet in connection order.
        """
        wallets = self._store.wallets
        if not wallets:
            logger.info("wallet_sync_skipped", reason="no wallets connected")
            return self._store.profile.assets

        correlation_id = create_correlation_id()
        logger.info("wallet_sync_started", wallets=len(wallets), correlation_id=str(correlation_id))

        results = await asyncio.gather(
            *(self.fetch_wallet_assets(address) for address in wallets),
            return_exceptions=True,
        )

        batch: list[Asset] = []
        for address, result in zip(wallets, results):
            if isinstance(result, BaseException):
                error = result if isinstance(result, ExternalServiceError) else (
                    ExternalServiceError("wallet_provider", str(result), address=address)
                )
                self._report_failure(error, correlation_id)
                if error is result:
                    raise error
                raise error from result
            batch.extend(result)

        # Wallets changed while fetching (disconnect, reset, import): the batch is stale
        if self._store.wallets != wallets:
            logger.warning(
                "wallet_sync_discarded",
                reason="wallets changed during sync",
                correlation_id=str(correlation_id),
            )
            return self._store.profile.assets

        return self._store.reconciler.merge_synced_assets(batch, correlation_id=correlation_id)
