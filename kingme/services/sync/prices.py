"""
Static Token Price Table

DESIGN DECISION: Prices are a fixed lookup, not a live feed. The freedom
score moves with what the user holds, not with minute-to-minute price
swings. Tokens missing from the table are skipped during sync.
"""

from decimal import Decimal
from typing import Iterator, Mapping, Optional

from pydantic import BaseModel, Field


SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
SKR_MINT = "SKRbvo6Gf7GondiT3BbTfuRDPqLWei4j2Qy2NPGZhW3"


class TokenPrice(BaseModel):
    symbol: str
    name: str
    price_usd: Decimal = Field(..., ge=0)


DEFAULT_PRICES: dict[str, TokenPrice] = {
    SOL_MINT: TokenPrice(symbol="SOL", name="Solana", price_usd=Decimal("200")),
    USDC_MINT: TokenPrice(symbol="USDC", name="USD Coin", price_usd=Decimal("1")),
    USDT_MINT: TokenPrice(symbol="USDT", name="Tether USD", price_usd=Decimal("1")),
    SKR_MINT: TokenPrice(symbol="SKR", name="Seeker", price_usd=Decimal("0.0178")),
}


class PriceTable:
    """
    Mint -> TokenPrice lookup.

    Native SOL has no mint; it is priced with the SOL_MINT entry.
    """

    def __init__(self, prices: Optional[Mapping[str, TokenPrice]] = None):
        self._prices = dict(DEFAULT_PRICES if prices is None else prices)

    def get(self, mint: str) -> Optional[TokenPrice]:
        return self._prices.get(mint)

    @property
    def native(self) -> Optional[TokenPrice]:
        return self._prices.get(SOL_MINT)

    def __contains__(self, mint: str) -> bool:
        return mint in self._prices

    def __iter__(self) -> Iterator[str]:
        return iter(self._prices)

    def __len__(self) -> int:
        return len(self._prices)
