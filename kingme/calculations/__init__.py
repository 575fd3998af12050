"""
Pure calculators over a UserProfile snapshot.

Nothing here mutates state or performs I/O.
"""

from kingme.calculations.freedom import (
    asset_annual_income,
    calculate_annual_debt_service,
    calculate_annual_desires,
    calculate_annual_needs,
    calculate_annual_obligations,
    calculate_asset_income,
    calculate_desire_impact,
    calculate_freedom,
    calculate_liquid_assets,
    calculate_opportunity_cost,
    format_freedom_days,
    get_freedom_state,
)
from kingme.calculations.cashflow import (
    analyze_account,
    analyze_all_accounts,
    monthly_amount,
)

__all__ = [
    "asset_annual_income",
    "calculate_annual_debt_service",
    "calculate_annual_desires",
    "calculate_annual_needs",
    "calculate_annual_obligations",
    "calculate_asset_income",
    "calculate_desire_impact",
    "calculate_freedom",
    "calculate_liquid_assets",
    "calculate_opportunity_cost",
    "format_freedom_days",
    "get_freedom_state",
    "analyze_account",
    "analyze_all_accounts",
    "monthly_amount",
]
