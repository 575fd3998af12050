"""
Shared fixtures and in-memory fakes.

No test touches the network or the real home directory.
"""

import hashlib
import hmac
from decimal import Decimal
from typing import Optional

import pytest

from kingme.audit import AuditLogger
from kingme.config import FreedomSettings, StoreSettings
from kingme.errors import ExternalServiceError
from kingme.models.audit import AuditEvent
from kingme.models.profile import Asset, AssetType, CryptoMetadata, UserProfile
from kingme.services.storage import (
    AuditStorageInterface,
    BlobStoreInterface,
    ProfileStorageInterface,
    StorageError,
    content_id,
)
from kingme.services.sync import TokenAccountRecord, WalletDataProvider
from kingme.store import ProfileStore


WALLET_1 = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
WALLET_2 = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


class InMemoryProfileStorage(ProfileStorageInterface):
    def __init__(self):
        self.saved: Optional[dict] = None
        self.save_count = 0
        self.fail = False

    def save_profile(self, profile: UserProfile) -> None:
        if self.fail:
            raise StorageError("disk full")
        self.saved = profile.to_json_dict()
        self.save_count += 1

    def load_profile(self) -> Optional[UserProfile]:
        if self.saved is None:
            return None
        return UserProfile.model_validate(self.saved)

    def clear(self) -> None:
        self.saved = None


class InMemoryAuditStorage(AuditStorageInterface):
    def __init__(self):
        self.events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self.events))[:limit]

    def types(self) -> list[str]:
        return [e.event_type.value for e in self.events]


class InMemoryBlobStore(BlobStoreInterface):
    def __init__(self):
        self.blobs: dict[str, str] = {}
        self.fail = False

    async def put(self, key: str, ciphertext: str) -> str:
        if self.fail:
            raise ExternalServiceError("blob", "upload refused", address=key)
        self.blobs[key] = ciphertext
        return content_id(ciphertext)

    async def get(self, key: str) -> Optional[str]:
        if self.fail:
            raise ExternalServiceError("blob", "download refused", address=key)
        return self.blobs.get(key)


class FakeWalletProvider(WalletDataProvider):
    """Holdings keyed by address; addresses in `failing` raise."""

    def __init__(self):
        self.tokens: dict[str, list[TokenAccountRecord]] = {}
        self.lamports: dict[str, int] = {}
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def set_wallet(self, address: str, lamports: int = 0, tokens=None) -> None:
        self.lamports[address] = lamports
        self.tokens[address] = list(tokens or [])

    async def get_token_accounts(self, address: str) -> list[TokenAccountRecord]:
        self.calls.append(address)
        if address in self.failing:
            raise ExternalServiceError("fake", "rpc timeout", address=address)
        return list(self.tokens.get(address, []))

    async def get_native_balance(self, address: str) -> int:
        if address in self.failing:
            raise ExternalServiceError("fake", "rpc timeout", address=address)
        return self.lamports.get(address, 0)


class HmacSigner:
    """Deterministic stand-in for a wallet: same secret, same signature."""

    def __init__(self, secret: bytes = b"wallet-secret"):
        self._secret = secret
        self.messages: list[bytes] = []

    async def sign(self, message: bytes) -> bytes:
        self.messages.append(message)
        return hmac.new(self._secret, message, hashlib.sha256).digest()


class RefusingSigner:
    async def sign(self, message: bytes) -> bytes:
        raise RuntimeError("User rejected the request")


def synced_asset(
    address: str,
    symbol: str,
    value: str,
    asset_type: AssetType = AssetType.CRYPTO,
) -> Asset:
    return Asset(
        id=f"{address}-{symbol}",
        type=asset_type,
        name=symbol,
        value=Decimal(value),
        metadata=CryptoMetadata(symbol=symbol, wallet_address=address),
    )


@pytest.fixture
def profile_storage() -> InMemoryProfileStorage:
    return InMemoryProfileStorage()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def store(profile_storage, audit_logger) -> ProfileStore:
    return ProfileStore(
        storage=profile_storage,
        audit_logger=audit_logger,
        settings=StoreSettings(),
        materiality_threshold=Decimal("1.00"),
        freedom_policy=FreedomSettings(),
    )


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def provider() -> FakeWalletProvider:
    return FakeWalletProvider()
