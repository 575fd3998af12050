"""
Freedom Score Calculation

How long could the user live on what they own if active income stopped?

The answer is a pure function of the snapshot:
- Asset income (annual) is compared against needs (obligations, debt
  service, purchased desires).
- If asset income covers needs, runway is unbounded ("Forever").
- Otherwise runway is liquid assets divided by the daily shortfall.

IMPORTANT: Every function here is total. Bad or missing numbers count as
zero; nothing raises for a structurally valid profile. Arithmetic runs in
a decimal context where overflow yields Infinity instead of raising, and
every result passes back through _num, so an absurdly large amount counts
as zero rather than breaking the calculation.
"""

import functools
from decimal import (
    Decimal,
    DivisionByZero,
    InvalidOperation,
    Overflow,
    localcontext,
)
from typing import Iterable, Optional

from kingme.config import FreedomSettings
from kingme.models.profile import (
    Asset,
    AssetType,
    BusinessMetadata,
    CryptoMetadata,
    RealEstateMetadata,
    StockMetadata,
    UserProfile,
)
from kingme.models.reports import (
    DesireImpact,
    FreedomResult,
    FreedomState,
    OpportunityCost,
)

ZERO = Decimal("0")
DAYS_PER_YEAR = Decimal("365")
MONTHS_PER_YEAR = Decimal("12")
HUNDRED = Decimal("100")
# Runways are reported in whole days; anything longer is clamped
MAX_RUNWAY_DAYS = 1_000_000_000

LIQUID_ASSET_TYPES = frozenset({AssetType.CRYPTO, AssetType.DEFI, AssetType.STOCKS})


def _num(value) -> Decimal:
    """Coerce to a finite Decimal; anything else is zero."""
    if value is None:
        return ZERO
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return ZERO
    return number if number.is_finite() else ZERO


def total(func):
    """Run func with decimal overflow and invalid operations untrapped."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with localcontext() as ctx:
            ctx.traps[Overflow] = False
            ctx.traps[InvalidOperation] = False
            ctx.traps[DivisionByZero] = False
            return func(*args, **kwargs)
    return wrapper


def _whole_days(value: Decimal) -> int:
    """Truncate to whole days in [0, MAX_RUNWAY_DAYS]. Overflow saturates."""
    if value.is_nan() or value <= ZERO:
        return 0
    return int(min(value, Decimal(MAX_RUNWAY_DAYS)))


def _percent_of(value, rate) -> Decimal:
    return _num(_num(value) * _num(rate) / HUNDRED)


def _ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    return _num(numerator / denominator) if denominator else ZERO


@total
def asset_annual_income(asset: Asset) -> Decimal:
    """
    Annual income one asset generates.

    Typed rules come first; when they produce nothing the manually entered
    annual_income is used.
    """
    meta = asset.metadata
    typed = ZERO

    if isinstance(meta, CryptoMetadata):
        typed = _percent_of(asset.value, meta.apy)
    elif isinstance(meta, RealEstateMetadata):
        typed = _num(
            (_num(meta.monthly_rental_income) - _num(meta.monthly_expenses)) * MONTHS_PER_YEAR
        )
    elif isinstance(meta, StockMetadata):
        typed = _percent_of(asset.value, meta.dividend_yield)
    elif isinstance(meta, BusinessMetadata):
        typed = _num(meta.annual_distributions)

    return typed if typed != ZERO else _num(asset.annual_income)


@total
def calculate_asset_income(assets: Iterable[Asset]) -> Decimal:
    """Total annual income from assets. Negative real-estate cash flow reduces it."""
    return _num(sum((asset_annual_income(a) for a in assets), ZERO))


@total
def calculate_annual_obligations(profile: UserProfile) -> Decimal:
    return _num(sum((_num(o.amount) * MONTHS_PER_YEAR for o in profile.obligations), ZERO))


@total
def calculate_annual_desires(profile: UserProfile) -> Decimal:
    """
    Desires only count once purchased and not yet completed.

    Wish-list items are planning, not spending.
    """
    return _num(sum(
        (
            _num(d.estimated_cost)
            for d in profile.desires
            if d.purchased_at is not None and d.completed_at is None
        ),
        ZERO,
    ))


@total
def calculate_annual_debt_service(profile: UserProfile) -> Decimal:
    return _num(sum((_num(d.monthly_payment) * MONTHS_PER_YEAR for d in profile.debts), ZERO))


@total
def calculate_annual_needs(profile: UserProfile) -> Decimal:
    """Obligations, purchased desires and debt service, per year."""
    return _num(
        calculate_annual_obligations(profile)
        + calculate_annual_desires(profile)
        + calculate_annual_debt_service(profile)
    )


@total
def calculate_liquid_assets(profile: UserProfile) -> Decimal:
    """Crypto, DeFi, stocks and bank balances. Real estate is not liquid."""
    assets = sum(
        (_num(a.value) for a in profile.assets if a.type in LIQUID_ASSET_TYPES),
        ZERO,
    )
    cash = sum((_num(b.current_balance) for b in profile.bank_accounts), ZERO)
    return _num(assets + cash)


def format_freedom_days(days: Optional[int], policy: Optional[FreedomSettings] = None) -> str:
    """Human-readable runway. None means unbounded."""
    policy = policy or FreedomSettings()
    if days is None or days > policy.forever_days:
        return "Forever"
    if days >= 730:
        years = days // 365
        return f"{years} years"
    if days >= 365:
        return "1 year"
    if days >= 60:
        months = days // 30
        return f"{months} months"
    if days >= 30:
        return "1 month"
    return f"{days} day{'s' if days != 1 else ''}"


def get_freedom_state(days: Optional[int], policy: Optional[FreedomSettings] = None) -> FreedomState:
    """Which freedom state a runway falls into."""
    policy = policy or FreedomSettings()
    if days is None or days > policy.enthroned_days:
        return FreedomState.ENTHRONED
    if days >= policy.rising_days:
        return FreedomState.RISING
    if days >= policy.breaking_days:
        return FreedomState.BREAKING
    if days >= policy.struggling_days:
        return FreedomState.STRUGGLING
    return FreedomState.DROWNING


def _runway_days(liquid: Decimal, daily_burn: Decimal) -> int:
    if daily_burn <= ZERO or liquid <= ZERO:
        return 0
    return _whole_days(liquid / daily_burn)


@total
def calculate_freedom(
    profile: UserProfile,
    policy: Optional[FreedomSettings] = None,
) -> FreedomResult:
    """
    Main freedom calculation.

    - Nothing earned and nothing needed: 0 days (not kinged; nothing to cover).
    - Asset income covers positive needs: unbounded, kinged.
    - Otherwise: liquid assets / (daily needs - daily asset income).
    """
    policy = policy or FreedomSettings()

    asset_income = calculate_asset_income(profile.assets)
    total_annual_needs = calculate_annual_needs(profile)
    daily_needs = _ratio(total_annual_needs, DAYS_PER_YEAR)
    daily_asset_income = _ratio(asset_income, DAYS_PER_YEAR)
    total_annual_income = _num(
        _num(profile.income.salary)
        + _num(profile.income.other_income)
        + asset_income
    )

    days: Optional[int]
    is_kinged = False

    if daily_asset_income == ZERO and daily_needs == ZERO:
        days = 0
    elif daily_needs > ZERO and daily_asset_income >= daily_needs:
        days = None
        is_kinged = True
    else:
        daily_burn = _num(daily_needs - daily_asset_income)
        days = _runway_days(calculate_liquid_assets(profile), daily_burn)

    return FreedomResult(
        days=days,
        formatted=format_freedom_days(days, policy),
        state=get_freedom_state(days, policy),
        daily_asset_income=daily_asset_income,
        daily_needs=daily_needs,
        total_annual_income=total_annual_income,
        is_kinged=is_kinged,
    )


@total
def calculate_desire_impact(
    current: FreedomResult,
    desire_cost: Decimal,
    liquid_assets: Decimal,
    policy: Optional[FreedomSettings] = None,
) -> DesireImpact:
    """
    What paying cash for a desire does to the runway.

    A kinged user stays kinged: the purchase comes out of principal,
    not out of the income that covers their needs.
    """
    policy = policy or FreedomSettings()
    if current.is_kinged:
        return DesireImpact(
            new_days=None,
            days_difference=0,
            new_state=FreedomState.ENTHRONED,
        )

    daily_burn = _num(current.daily_needs - current.daily_asset_income)
    new_days = _runway_days(_num(_num(liquid_assets) - _num(desire_cost)), daily_burn)
    current_days = current.days or 0

    return DesireImpact(
        new_days=new_days,
        days_difference=current_days - new_days,
        new_state=get_freedom_state(new_days, policy),
    )


@total
def calculate_opportunity_cost(
    assets: Iterable[Asset],
    policy: Optional[FreedomSettings] = None,
) -> OpportunityCost:
    """Value of crypto earning nothing, and what it could earn at a conservative yield."""
    policy = policy or FreedomSettings()
    idle_value = _num(sum(
        (
            _num(a.value)
            for a in assets
            if a.type == AssetType.CRYPTO
            and isinstance(a.metadata, CryptoMetadata)
            and not _num(a.metadata.apy)
        ),
        ZERO,
    ))
    potential_income = _num(idle_value * _num(policy.idle_asset_apy))

    return OpportunityCost(
        idle_value=idle_value,
        potential_income=potential_income,
        freedom_days_impact=_whole_days(potential_income / DAYS_PER_YEAR),
    )
