"""
Profile Data Models for KingMe

These models define every financial entity the store holds, and the
snapshot (UserProfile) that is persisted, exported and backed up.

DESIGN DECISION: JSON field names are camelCase aliases of the Python
names. Backups written by the mobile app load without translation, and
Python code still reads naturally (account.is_primary_income).

DESIGN DECISION: Asset metadata is a discriminated union keyed on
metadata.type. The reconciler reads wallet_address from CryptoMetadata
directly instead of guessing at an untyped dict.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel


def new_id() -> str:
    return uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProfileModel(BaseModel):
    """Shared configuration for every persisted entity."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


# =============================================================================
# ENUMS
# =============================================================================

class BankAccountType(str, Enum):
    CHECKING = "checking"
    SAVINGS = "savings"
    INVESTMENT = "investment"


class AssetType(str, Enum):
    """
    Asset categories.

    CRYPTO and DEFI are owned by wallet synchronization. Everything else
    is entered by hand and has no external source of truth.
    """
    CRYPTO = "crypto"
    DEFI = "defi"
    REAL_ESTATE = "real_estate"
    STOCKS = "stocks"
    BUSINESS = "business"
    OTHER = "other"


SYNCED_ASSET_TYPES = frozenset({AssetType.CRYPTO, AssetType.DEFI})


class ObligationCategory(str, Enum):
    HOUSING = "housing"
    UTILITIES = "utilities"
    INSURANCE = "insurance"
    DEBT_SERVICE = "debt_service"
    DAILY_LIVING = "daily_living"
    OTHER = "other"


class DesirePriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IncomeFrequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    TWICE_MONTHLY = "twice_monthly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class AvatarType(str, Enum):
    MALE_MEDIUM = "male-medium"
    FEMALE_MEDIUM = "female-medium"
    MALE_DARK = "male-dark"


class SyncFrequency(str, Enum):
    REALTIME = "realtime"
    HOURLY = "hourly"
    DAILY = "daily"


# =============================================================================
# BANK ACCOUNTS & INCOME
# =============================================================================

class BankAccount(ProfileModel):
    """
    A bank account.

    CRITICAL: At most one account in the store is the primary income
    account. The store enforces this; never flip the flag on a copy and
    expect it to stick.
    """

    id: str = Field(default_factory=new_id)
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    institution: str = Field(
        default="Unknown",
        max_length=200,
        description="Bank or brokerage name"
    )
    type: BankAccountType = BankAccountType.CHECKING
    current_balance: Decimal = Field(
        ...,
        description="Current balance (may be negative)"
    )
    is_primary_income: bool = Field(
        default=False,
        description="Paycheck destination"
    )


class Income(ProfileModel):
    """Annual income figures."""

    salary: Decimal = Field(default=Decimal("0"), ge=0)
    other_income: Decimal = Field(default=Decimal("0"), ge=0)
    # Derived from assets; refreshed by the store whenever assets change
    asset_income: Decimal = Field(default=Decimal("0"), ge=0)


class IncomeSource(ProfileModel):
    """
    A recurring deposit into a bank account.

    bank_account_id may point at an account that has since been removed;
    consumers treat that as unlinked.
    """

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0, description="Amount per payment")
    frequency: IncomeFrequency = IncomeFrequency.MONTHLY
    bank_account_id: Optional[str] = None


# =============================================================================
# ASSETS
# =============================================================================

class CryptoMetadata(ProfileModel):
    """On-chain holding. wallet_address is the reconciliation join key."""

    type: Literal["crypto"] = "crypto"
    token_mint: Optional[str] = None
    symbol: Optional[str] = None
    decimals: Optional[int] = Field(default=None, ge=0)
    quantity: Decimal = Field(default=Decimal("0"), ge=0)
    protocol: Optional[str] = None
    apy: Optional[Decimal] = Field(default=None, ge=0, description="Percent")
    is_staked: bool = False
    wallet_address: Optional[str] = None


class RealEstateMetadata(ProfileModel):
    type: Literal["real_estate"] = "real_estate"
    address: str = ""
    purchase_price: Decimal = Field(default=Decimal("0"), ge=0)
    current_value: Decimal = Field(default=Decimal("0"), ge=0)
    monthly_rental_income: Optional[Decimal] = Field(default=None, ge=0)
    monthly_expenses: Optional[Decimal] = Field(default=None, ge=0)


class StockMetadata(ProfileModel):
    type: Literal["stocks"] = "stocks"
    ticker: Optional[str] = None
    shares: Decimal = Field(default=Decimal("0"), ge=0)
    current_price: Decimal = Field(default=Decimal("0"), ge=0)
    dividend_yield: Optional[Decimal] = Field(default=None, ge=0, description="Percent")


class BusinessMetadata(ProfileModel):
    type: Literal["business"] = "business"
    equity_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    valuation: Decimal = Field(default=Decimal("0"), ge=0)
    annual_distributions: Decimal = Field(default=Decimal("0"), ge=0)


class OtherMetadata(ProfileModel):
    type: Literal["other"] = "other"
    description: str = ""


AssetMetadata = Annotated[
    Union[
        CryptoMetadata,
        RealEstateMetadata,
        StockMetadata,
        BusinessMetadata,
        OtherMetadata,
    ],
    Field(discriminator="type"),
]


class Asset(ProfileModel):
    """
    Anything of value the user owns.

    Crypto and DeFi assets must carry CryptoMetadata. Assets produced by
    wallet sync always set metadata.wallet_address.
    """

    id: str = Field(default_factory=new_id)
    type: AssetType
    name: str = Field(..., min_length=1, max_length=200)
    value: Decimal = Field(..., ge=0, description="Current market value")
    annual_income: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="What the asset generates per year"
    )
    metadata: AssetMetadata = Field(default_factory=OtherMetadata)

    @model_validator(mode='after')
    def validate_crypto_metadata(self) -> 'Asset':
        if self.type in SYNCED_ASSET_TYPES and not isinstance(self.metadata, CryptoMetadata):
            raise ValueError(f"{self.type.value} assets require crypto metadata")
        return self

    @property
    def is_synced_type(self) -> bool:
        """True for the crypto/defi partition owned by wallet sync."""
        return self.type in SYNCED_ASSET_TYPES

    @property
    def wallet_address(self) -> Optional[str]:
        if isinstance(self.metadata, CryptoMetadata):
            return self.metadata.wallet_address
        return None


# =============================================================================
# OBLIGATIONS, DEBTS, DESIRES
# =============================================================================

class Obligation(ProfileModel):
    """A monthly bill."""

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0, description="Monthly amount")
    category: ObligationCategory = ObligationCategory.OTHER
    is_recurring: bool = True
    bank_account_id: Optional[str] = None


class Debt(ProfileModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    principal: Decimal = Field(default=Decimal("0"), ge=0)
    interest_rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="As a fraction (0.07 for 7%)"
    )
    monthly_payment: Decimal = Field(default=Decimal("0"), ge=0)
    minimum_payment: Decimal = Field(default=Decimal("0"), ge=0)


class ResearchedProduct(ProfileModel):
    name: str
    price: Decimal = Field(..., ge=0)
    url: Optional[str] = None
    description: Optional[str] = None


class Desire(ProfileModel):
    """
    Something the user wants to buy.

    Desires only count toward needs once purchased and not yet completed.
    """

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    estimated_cost: Decimal = Field(..., ge=0)
    priority: DesirePriority = DesirePriority.MEDIUM
    target_date: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    researched_product: Optional[ResearchedProduct] = None
    created_at: datetime = Field(default_factory=utc_now)
    purchased_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


# =============================================================================
# SETTINGS, HISTORY, SNAPSHOT
# =============================================================================

class UserSettings(ProfileModel):
    """UI preferences. Opaque to the core beyond being persisted."""

    avatar_type: AvatarType = AvatarType.MALE_MEDIUM
    notifications_enabled: bool = True
    sync_frequency: SyncFrequency = SyncFrequency.HOURLY
    dark_mode: bool = True


class FreedomScoreHistory(ProfileModel):
    date: datetime = Field(default_factory=utc_now)
    # None means unbounded (asset income covers every need)
    days: Optional[int] = Field(default=None, ge=0)
    asset_income: Decimal = Decimal("0")
    total_needs: Decimal = Decimal("0")


class UserProfile(ProfileModel):
    """
    The snapshot: every financial entity at one instant.

    This is the unit of persistence, export, import and backup.
    Every collection defaults to empty so older backups load.
    """

    wallets: list[str] = Field(default_factory=list)
    income: Income = Field(default_factory=Income)
    income_sources: list[IncomeSource] = Field(default_factory=list)
    bank_accounts: list[BankAccount] = Field(default_factory=list)
    assets: list[Asset] = Field(default_factory=list)
    obligations: list[Obligation] = Field(default_factory=list)
    desires: list[Desire] = Field(default_factory=list)
    debts: list[Debt] = Field(default_factory=list)
    freedom_history: list[FreedomScoreHistory] = Field(default_factory=list)
    settings: UserSettings = Field(default_factory=UserSettings)
    last_synced: Optional[datetime] = None
    onboarding_complete: bool = False

    def to_json_dict(self) -> dict:
        """Camel-cased, JSON-safe dict (Decimals become strings)."""
        return self.model_dump(mode="json", by_alias=True)

    @property
    def primary_account(self) -> Optional[BankAccount]:
        return next((a for a in self.bank_accounts if a.is_primary_income), None)
