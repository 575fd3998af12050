"""
Tests for the Freedom Score calculator.

The calculator is a pure function of a UserProfile, so every test builds
a profile directly instead of going through the store.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from kingme.calculations import (
    asset_annual_income,
    calculate_annual_needs,
    calculate_asset_income,
    calculate_desire_impact,
    calculate_freedom,
    calculate_opportunity_cost,
    format_freedom_days,
    get_freedom_state,
)
from kingme.calculations.freedom import MAX_RUNWAY_DAYS
from kingme.config import FreedomSettings
from kingme.models.profile import (
    Asset,
    AssetType,
    BankAccount,
    BusinessMetadata,
    CryptoMetadata,
    Debt,
    Desire,
    Obligation,
    OtherMetadata,
    RealEstateMetadata,
    StockMetadata,
    UserProfile,
)
from kingme.models.reports import FreedomState

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _cash(balance: str) -> BankAccount:
    return BankAccount(name="Checking", current_balance=Decimal(balance))


def _crypto(value: str, apy: str = None) -> Asset:
    return Asset(
        type=AssetType.CRYPTO,
        name="SOL",
        value=Decimal(value),
        metadata=CryptoMetadata(apy=Decimal(apy) if apy else None),
    )


def _rent(monthly: str) -> Obligation:
    return Obligation(name="Rent", amount=Decimal(monthly))


class TestAssetIncome:
    """Tests for per-type asset income rules."""

    def test_crypto_uses_apy(self):
        """value * apy / 100"""
        assert asset_annual_income(_crypto("10000", "5")) == Decimal("500")

    def test_real_estate_net_rent(self):
        """12 * (rent - expenses)"""
        asset = Asset(
            type=AssetType.REAL_ESTATE,
            name="Condo",
            value=Decimal("200000"),
            metadata=RealEstateMetadata(
                monthly_rental_income=Decimal("1800"),
                monthly_expenses=Decimal("600"),
            ),
        )
        assert asset_annual_income(asset) == Decimal("14400")

    def test_stocks_dividend_yield(self):
        """value * dividend_yield / 100"""
        asset = Asset(
            type=AssetType.STOCKS,
            name="SCHD",
            value=Decimal("50000"),
            metadata=StockMetadata(dividend_yield=Decimal("3.5")),
        )
        assert asset_annual_income(asset) == Decimal("1750")

    def test_business_distributions(self):
        """annual_distributions as-is"""
        asset = Asset(
            type=AssetType.BUSINESS,
            name="Shop",
            value=Decimal("80000"),
            metadata=BusinessMetadata(annual_distributions=Decimal("12000")),
        )
        assert asset_annual_income(asset) == Decimal("12000")

    def test_other_uses_declared_income(self):
        """Other assets report their manual annual_income."""
        asset = Asset(
            type=AssetType.OTHER,
            name="Royalties",
            value=Decimal("0"),
            annual_income=Decimal("2400"),
            metadata=OtherMetadata(),
        )
        assert asset_annual_income(asset) == Decimal("2400")

    def test_declared_income_fallback(self):
        """A typed rule yielding zero falls back to declared income."""
        asset = _crypto("1000")
        asset.annual_income = Decimal("30")
        assert asset_annual_income(asset) == Decimal("30")

    def test_total(self):
        """Income sums across assets."""
        total = calculate_asset_income([_crypto("1000", "10"), _crypto("2000", "5")])
        assert total == Decimal("200")


class TestFreedomScore:
    """Tests for calculate_freedom."""

    def test_empty_profile_is_zero(self):
        """Nothing earned and nothing needed: 0 days, drowning."""
        result = calculate_freedom(UserProfile())
        assert result.days == 0
        assert result.state == FreedomState.DROWNING
        assert result.formatted == "0 days"
        assert result.is_kinged is False

    def test_asset_income_covers_needs(self):
        """Asset income >= needs gives unbounded runway."""
        profile = UserProfile(
            assets=[_crypto("120000", "10")],  # 12000/yr
            obligations=[_rent("1000")],  # 12000/yr
        )
        result = calculate_freedom(profile)
        assert result.days is None
        assert result.is_unbounded
        assert result.is_kinged
        assert result.formatted == "Forever"
        assert result.state == FreedomState.ENTHRONED

    def test_runway_from_liquid_assets(self):
        """liquid / (daily needs - daily asset income), floored."""
        profile = UserProfile(
            bank_accounts=[_cash("10000")],
            assets=[_crypto("26000")],
            obligations=[_rent("3650")],  # 43800/yr = 120/day
        )
        result = calculate_freedom(profile)
        assert result.days == 300
        assert result.state == FreedomState.BREAKING
        assert result.formatted == "10 months"
        assert result.daily_needs == Decimal("120")

    def test_real_estate_is_not_liquid(self):
        """Property value never counts toward runway."""
        house = Asset(
            type=AssetType.REAL_ESTATE,
            name="House",
            value=Decimal("500000"),
            metadata=RealEstateMetadata(),
        )
        profile = UserProfile(assets=[house], obligations=[_rent("3650")])
        assert calculate_freedom(profile).days == 0

    def test_asset_income_reduces_burn(self):
        """Partial asset income stretches the runway."""
        profile = UserProfile(
            bank_accounts=[_cash("6000")],
            # 21900/yr = 60/day of income
            assets=[_crypto("219000", "10")],
            obligations=[_rent("3650")],
        )
        # liquid 225000 / (120 - 60) = 3750 days
        result = calculate_freedom(profile)
        assert result.days == 3750
        assert result.state == FreedomState.ENTHRONED
        assert result.formatted == "10 years"

    def test_needs_include_debts_and_purchased_desires(self):
        """Debt payments and purchased, uncompleted desires count as needs."""
        profile = UserProfile(
            debts=[Debt(name="Car", monthly_payment=Decimal("100"))],
            desires=[
                Desire(name="Bike", estimated_cost=Decimal("600"), purchased_at=NOW),
                Desire(name="Wishlist", estimated_cost=Decimal("9999")),
                Desire(
                    name="Done",
                    estimated_cost=Decimal("9999"),
                    purchased_at=NOW,
                    completed_at=NOW,
                ),
            ],
        )
        result = calculate_freedom(profile)
        assert result.daily_needs == Decimal("1800") / Decimal("365")

    def test_total_annual_income(self):
        """Salary + other income + asset income."""
        profile = UserProfile(assets=[_crypto("1000", "10")])
        profile.income.salary = Decimal("50000")
        profile.income.other_income = Decimal("5000")
        assert calculate_freedom(profile).total_annual_income == Decimal("55100")

    def test_non_finite_values_count_as_zero(self):
        """A NaN balance slipped in by a bad writer does not raise."""
        bad = BankAccount.model_construct(
            id="bad",
            name="Bad",
            institution="Unknown",
            current_balance=Decimal("NaN"),
            is_primary_income=False,
        )
        profile = UserProfile(bank_accounts=[bad, _cash("1200")], obligations=[_rent("365")])
        assert calculate_freedom(profile).days == 100

    def test_overflowing_needs_count_as_zero(self):
        """Needs too large for a decimal count as zero instead of raising."""
        profile = UserProfile(
            bank_accounts=[_cash("1000")],
            obligations=[_rent("9E+999998")],
            debts=[Debt(name="Loan", monthly_payment=Decimal("9E+999998"))],
        )
        assert calculate_annual_needs(profile) == Decimal("0")

        result = calculate_freedom(profile)

        assert result.days == 0
        assert result.daily_needs == Decimal("0")
        assert result.state == FreedomState.DROWNING

    def test_overflowing_yield_counts_as_zero(self):
        """An asset whose income overflows earns nothing."""
        whale = _crypto("9E+999998", "100000")
        assert asset_annual_income(whale) == Decimal("0")
        assert calculate_asset_income([whale, _crypto("1000", "10")]) == Decimal("100")
        assert calculate_freedom(UserProfile(assets=[whale])).days == 0

    def test_overflowing_runway_saturates(self):
        """A runway too long to represent is clamped, not zeroed."""
        profile = UserProfile(bank_accounts=[_cash("9E+999998")], obligations=[_rent("1")])

        result = calculate_freedom(profile)

        assert result.days == MAX_RUNWAY_DAYS
        assert result.formatted == "Forever"
        assert result.is_kinged is False

    def test_custom_policy_thresholds(self):
        """State thresholds come from configuration."""
        policy = FreedomSettings(struggling_days=10, breaking_days=20, rising_days=40, enthroned_days=80)
        profile = UserProfile(bank_accounts=[_cash("600")], obligations=[_rent("365")])
        result = calculate_freedom(profile, policy)
        assert result.days == 50
        assert result.state == FreedomState.RISING


class TestFormatting:
    """Tests for format_freedom_days and get_freedom_state."""

    @pytest.mark.parametrize("days,expected", [
        (0, "0 days"),
        (1, "1 day"),
        (12, "12 days"),
        (30, "1 month"),
        (59, "1 month"),
        (90, "3 months"),
        (365, "1 year"),
        (729, "1 year"),
        (1460, "4 years"),
        (36500, "100 years"),
        (36501, "Forever"),
        (None, "Forever"),
    ])
    def test_format(self, days, expected):
        """Human-readable runway."""
        assert format_freedom_days(days) == expected

    @pytest.mark.parametrize("days,state", [
        (0, FreedomState.DROWNING),
        (29, FreedomState.DROWNING),
        (30, FreedomState.STRUGGLING),
        (180, FreedomState.BREAKING),
        (730, FreedomState.RISING),
        (3650, FreedomState.RISING),
        (3651, FreedomState.ENTHRONED),
        (None, FreedomState.ENTHRONED),
    ])
    def test_states(self, days, state):
        """State boundaries at 30/180/730/3650 days."""
        assert get_freedom_state(days) == state

    def test_policy_rejects_unordered_thresholds(self):
        """Thresholds must ascend."""
        with pytest.raises(ValueError):
            FreedomSettings(struggling_days=200, breaking_days=100)


class TestWhatIf:
    """Tests for desire impact and opportunity cost."""

    def test_desire_impact(self):
        """Spending cash shortens the runway."""
        profile = UserProfile(bank_accounts=[_cash("3650")], obligations=[_rent("365")])
        current = calculate_freedom(profile)  # 304 days

        impact = calculate_desire_impact(current, Decimal("1200"), Decimal("3650"))

        assert impact.new_days == 204
        assert impact.days_difference == 100
        assert impact.new_state == FreedomState.BREAKING

    def test_desire_impact_when_kinged(self):
        """A kinged user stays kinged."""
        profile = UserProfile(assets=[_crypto("120000", "10")], obligations=[_rent("100")])
        impact = calculate_desire_impact(calculate_freedom(profile), Decimal("5000"), Decimal("0"))
        assert impact.new_days is None
        assert impact.new_state == FreedomState.ENTHRONED

    def test_opportunity_cost(self):
        """Idle crypto at the configured yield."""
        cost = calculate_opportunity_cost([_crypto("36500"), _crypto("1000", "7")])
        assert cost.idle_value == Decimal("36500")
        assert cost.potential_income == Decimal("2920")
        assert cost.freedom_days_impact == 8
