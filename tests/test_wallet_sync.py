"""
Tests for wallet synchronization and the Helius adapter.

The Helius tests run against httpx.MockTransport; nothing leaves the
process.
"""

import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from kingme.errors import ExternalServiceError
from kingme.models.profile import Asset, AssetType, StockMetadata
from kingme.services.sync import (
    SKR_MINT,
    SOL_MINT,
    USDC_MINT,
    HeliusDataProvider,
    PriceTable,
    TokenAccountRecord,
    TokenPrice,
    WalletSyncService,
)

from conftest import WALLET_1, WALLET_2, FakeWalletProvider

UNKNOWN_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


def _usdc(amount_usd: int) -> TokenAccountRecord:
    return TokenAccountRecord(mint=USDC_MINT, amount=amount_usd * 10**6, decimals=6)


@pytest.fixture
def prices() -> PriceTable:
    return PriceTable({
        SOL_MINT: TokenPrice(symbol="SOL", name="Solana", price_usd=Decimal("100")),
        USDC_MINT: TokenPrice(symbol="USDC", name="USD Coin", price_usd=Decimal("1")),
    })


@pytest.fixture
def sync(store, provider, prices, audit_logger) -> WalletSyncService:
    return WalletSyncService(store, provider, prices=prices, audit_logger=audit_logger)


class TestWalletSync:
    """Tests for WalletSyncService."""

    def test_builds_assets_from_holdings(self, store, provider, sync):
        """Native SOL and priced tokens become crypto assets with the wallet address."""
        store.connect_wallet(WALLET_1)
        provider.set_wallet(WALLET_1, lamports=1_500_000_000, tokens=[_usdc(5000)])

        asyncio.run(sync.sync_wallets())

        assets = store.profile.assets
        assert [a.id for a in assets] == [f"{WALLET_1}-SOL", f"{WALLET_1}-{USDC_MINT}"]
        assert assets[0].value == Decimal("150")
        assert assets[0].metadata.quantity == Decimal("1.5")
        assert assets[1].value == Decimal("5000")
        assert all(a.wallet_address == WALLET_1 for a in assets)

    def test_resync_is_complete_truth(self, store, provider, sync):
        """SOL $100 + USDC $5000, then SOL $120 only: USDC is gone."""
        store.connect_wallet(WALLET_1)
        provider.set_wallet(WALLET_1, lamports=1_000_000_000, tokens=[_usdc(5000)])
        asyncio.run(sync.sync_wallets())

        provider.set_wallet(WALLET_1, lamports=1_200_000_000)
        asyncio.run(sync.sync_wallets())

        crypto = [(a.name, a.value) for a in store.profile.assets if a.is_synced_type]
        assert crypto == [("Solana", Decimal("120"))]

    def test_unpriced_and_empty_tokens_skipped(self, store, provider, sync):
        """Tokens absent from the price table or with zero balance are ignored."""
        store.connect_wallet(WALLET_1)
        provider.set_wallet(WALLET_1, tokens=[
            TokenAccountRecord(mint=UNKNOWN_MINT, amount=10**12, decimals=5),
            TokenAccountRecord(mint=USDC_MINT, amount=0, decimals=6),
        ])

        asyncio.run(sync.sync_wallets())

        assert store.profile.assets == []

    def test_same_mint_accounts_summed(self, store, provider, sync):
        """Several accounts of one mint make one asset."""
        store.connect_wallet(WALLET_1)
        provider.set_wallet(WALLET_1, tokens=[_usdc(10), _usdc(15)])

        asyncio.run(sync.sync_wallets())

        [asset] = store.profile.assets
        assert asset.value == Decimal("25")

    def test_dust_dropped(self, store, provider, sync):
        """Holdings under the materiality threshold never appear."""
        store.connect_wallet(WALLET_1)
        provider.set_wallet(WALLET_1, lamports=5_000_000)  # 0.005 SOL = $0.50

        asyncio.run(sync.sync_wallets())

        assert store.profile.assets == []

    def test_wallet_order_preserved(self, store, provider, sync):
        """Assets follow wallet connection order, not value."""
        store.connect_wallet(WALLET_1)
        store.connect_wallet(WALLET_2)
        provider.set_wallet(WALLET_1, tokens=[_usdc(5)])
        provider.set_wallet(WALLET_2, tokens=[_usdc(5000)])

        asyncio.run(sync.sync_wallets())

        assert [a.wallet_address for a in store.profile.assets] == [WALLET_1, WALLET_2]

    def test_one_failure_aborts_everything(self, store, provider, sync, audit_storage):
        """Any failing wallet leaves the store unchanged and names the wallet."""
        store.connect_wallet(WALLET_1)
        store.connect_wallet(WALLET_2)
        provider.set_wallet(WALLET_1, tokens=[_usdc(100)])
        asyncio.run(sync.sync_wallets())
        before = store.profile

        provider.set_wallet(WALLET_1, tokens=[_usdc(999)])
        provider.failing.add(WALLET_2)
        with pytest.raises(ExternalServiceError) as exc_info:
            asyncio.run(sync.sync_wallets())

        assert exc_info.value.address == WALLET_2
        assert store.profile == before
        assert "sync_failed" in audit_storage.types()

    def test_unexpected_provider_error_is_wrapped(self, store, provider, sync):
        """Non-domain errors from a provider still carry the wallet address."""
        store.connect_wallet(WALLET_1)

        async def boom(address):
            raise RuntimeError("socket closed")

        provider.get_token_accounts = boom
        with pytest.raises(ExternalServiceError) as exc_info:
            asyncio.run(sync.sync_wallets())
        assert exc_info.value.address == WALLET_1

    def test_manual_assets_survive_sync(self, store, provider, sync):
        """Stocks and other manual assets are untouched by sync."""
        stock = store.add_asset(Asset(
            type=AssetType.STOCKS,
            name="VTI",
            value=Decimal("10000"),
            metadata=StockMetadata(ticker="VTI"),
        ))
        store.connect_wallet(WALLET_1)
        provider.set_wallet(WALLET_1, tokens=[_usdc(50)])

        asyncio.run(sync.sync_wallets())

        assert store.profile.assets[0] == stock
        assert len(store.profile.assets) == 2

    def test_disconnect_during_fetch_wins(self, store, prices):
        """A wallet disconnected mid-sync does not get its assets back."""
        store.connect_wallet(WALLET_1)

        class GatedProvider(FakeWalletProvider):
            async def get_token_accounts(self, address):
                await self.gate.wait()
                return await super().get_token_accounts(address)

        gated = GatedProvider()
        gated.set_wallet(WALLET_1, tokens=[_usdc(500)])
        service = WalletSyncService(store, gated, prices=prices)

        async def run():
            gated.gate = asyncio.Event()
            task = asyncio.create_task(service.sync_wallets())
            await asyncio.sleep(0)
            store.disconnect_wallet(WALLET_1)
            gated.gate.set()
            return await task

        asyncio.run(run())

        assert store.wallets == []
        assert store.profile.assets == []

    def test_reset_during_fetch_wins(self, store, prices):
        """A store reset mid-sync is not overwritten by the stale batch."""
        store.connect_wallet(WALLET_1)

        class GatedProvider(FakeWalletProvider):
            async def get_native_balance(self, address):
                await self.gate.wait()
                return await super().get_native_balance(address)

        gated = GatedProvider()
        gated.set_wallet(WALLET_1, lamports=2_000_000_000)
        service = WalletSyncService(store, gated, prices=prices)

        async def run():
            gated.gate = asyncio.Event()
            task = asyncio.create_task(service.sync_wallets())
            await asyncio.sleep(0)
            store.reset_store()
            gated.gate.set()
            return await task

        asyncio.run(run())

        assert store.profile.assets == []
        assert store.profile.last_synced is None

    def test_no_wallets_is_noop(self, store, provider, sync, profile_storage):
        """Nothing connected: no provider calls, no writes."""
        asyncio.run(sync.sync_wallets())
        assert provider.calls == []
        assert profile_storage.save_count == 0


class TestPriceTable:
    """Tests for the static price table."""

    def test_defaults(self):
        """Known mints have prices; unknown ones do not."""
        table = PriceTable()
        assert table.get(USDC_MINT).price_usd == Decimal("1")
        assert table.get(SKR_MINT).price_usd == Decimal("0.0178")
        assert table.native.symbol == "SOL"
        assert table.get(UNKNOWN_MINT) is None


def _mock_helius(handler) -> HeliusDataProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HeliusDataProvider(endpoint="https://rpc.test/?api-key=x", client=client)


class TestHeliusDataProvider:
    """Tests for the JSON-RPC adapter."""

    def test_token_accounts_parsed(self):
        """jsonParsed accounts become TokenAccountRecords."""
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert body["method"] == "getTokenAccountsByOwner"
            assert body["params"][0] == WALLET_1
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"value": [
                {"account": {"data": {"parsed": {"info": {
                    "mint": USDC_MINT,
                    "tokenAmount": {"amount": "2500000", "decimals": 6},
                }}}}},
                {"account": {"data": {"program": "unparsed"}}},
            ]}})

        records = asyncio.run(_mock_helius(handler).get_token_accounts(WALLET_1))
        assert records == [TokenAccountRecord(mint=USDC_MINT, amount=2_500_000, decimals=6)]

    def test_native_balance(self):
        """getBalance returns lamports."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {
                "context": {"slot": 1}, "value": 2_000_000_000,
            }})

        assert asyncio.run(_mock_helius(handler).get_native_balance(WALLET_1)) == 2_000_000_000

    def test_rpc_error(self):
        """An RPC error object becomes ExternalServiceError with the address."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {
                "code": -32602, "message": "Invalid param",
            }})

        with pytest.raises(ExternalServiceError) as exc_info:
            asyncio.run(_mock_helius(handler).get_native_balance(WALLET_1))
        assert exc_info.value.address == WALLET_1
        assert "Invalid param" in str(exc_info.value)

    def test_http_error(self):
        """Non-2xx responses become ExternalServiceError."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": "rate limited"})

        with pytest.raises(ExternalServiceError, match="429"):
            asyncio.run(_mock_helius(handler).get_token_accounts(WALLET_1))
