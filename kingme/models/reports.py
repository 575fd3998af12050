"""
Derived Report Models

Results of the pure calculators. None of these are persisted except
through FreedomScoreHistory; they are recomputed from the snapshot.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from kingme.models.profile import BankAccount, Obligation


class FreedomState(str, Enum):
    """
    How far the user is from living on asset income.

    Ordered from worst to best.
    """
    DROWNING = "drowning"
    STRUGGLING = "struggling"
    BREAKING = "breaking"
    RISING = "rising"
    ENTHRONED = "enthroned"


class FreedomResult(BaseModel):
    """
    Output of the freedom score calculation.

    days is None when asset income covers every need (unbounded runway).
    """

    days: Optional[int] = Field(
        default=0,
        ge=0,
        description="Days the user can live without active income"
    )
    formatted: str = Field(
        ...,
        description="Human-readable runway, e.g. '3 months' or 'Forever'"
    )
    state: FreedomState
    daily_asset_income: Decimal = Decimal("0")
    daily_needs: Decimal = Decimal("0")
    total_annual_income: Decimal = Field(
        default=Decimal("0"),
        description="Salary + other income + asset income"
    )
    is_kinged: bool = Field(
        default=False,
        description="True when asset income alone covers every need"
    )

    @property
    def is_unbounded(self) -> bool:
        return self.days is None


class DesireImpact(BaseModel):
    """What buying a desire does to the runway."""

    new_days: Optional[int] = None
    days_difference: int = 0
    new_state: FreedomState


class OpportunityCost(BaseModel):
    """Idle crypto and what it could earn."""

    idle_value: Decimal = Decimal("0")
    potential_income: Decimal = Decimal("0")
    freedom_days_impact: int = 0


class AccountStatus(str, Enum):
    HEALTHY = "healthy"
    TIGHT = "tight"
    DEFICIT = "deficit"


class HealthStatus(str, Enum):
    CRITICAL = "critical"
    STRUGGLING = "struggling"
    STABLE = "stable"
    BUILDING = "building"
    THRIVING = "thriving"


class CashFlowAnalysis(BaseModel):
    """Monthly cash flow through a single bank account."""

    account: BankAccount
    monthly_income: Decimal = Decimal("0")
    monthly_obligations: Decimal = Decimal("0")
    monthly_net: Decimal = Decimal("0")
    current_balance: Decimal = Decimal("0")
    # None when nothing drains the account
    days_of_runway: Optional[int] = None
    status: AccountStatus = AccountStatus.HEALTHY
    warnings: list[str] = Field(default_factory=list)


class OverallCashFlow(BaseModel):
    """Cash flow across every account."""

    total_monthly_income: Decimal = Decimal("0")
    total_monthly_obligations: Decimal = Decimal("0")
    total_monthly_debt_payments: Decimal = Decimal("0")
    total_monthly_net: Decimal = Decimal("0")
    total_balance: Decimal = Decimal("0")
    liquid_assets: Decimal = Decimal("0")
    unlinked_obligations: list[Obligation] = Field(
        default_factory=list,
        description="Obligations with no account, or pointing at a removed one"
    )
    unlinked_income_source_ids: list[str] = Field(default_factory=list)
    accounts: list[CashFlowAnalysis] = Field(default_factory=list)
    health_status: HealthStatus
    health_message: str
    recommendations: list[str] = Field(default_factory=list)
