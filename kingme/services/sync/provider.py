"""
Wallet Data Provider Interface

Where on-chain holdings come from. The sync service depends only on this
interface; HeliusDataProvider is the shipped implementation and tests use
an in-memory fake.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field


LAMPORTS_PER_SOL = 1_000_000_000


class TokenAccountRecord(BaseModel):
    """
    One SPL token account as reported by the chain.

    amount is the raw integer; divide by 10**decimals for whole tokens.
    """

    mint: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0)
    decimals: int = Field(..., ge=0)


class WalletDataProvider(ABC):
    """
    Abstract source of wallet holdings.
    """

    @abstractmethod
    async def get_token_accounts(self, address: str) -> list[TokenAccountRecord]:
        """
        List the token accounts owned by a wallet.

        Args:
            address: Base58 wallet address

        Returns:
            Every token account, including zero balances

        Raises:
            ExternalServiceError: If the provider call fails
        """
        pass

    @abstractmethod
    async def get_native_balance(self, address: str) -> int:
        """
        Native SOL balance of a wallet.

        Returns:
            Balance in lamports

        Raises:
            ExternalServiceError: If the provider call fails
        """
        pass
