"""
Cash Flow Analysis

Per-account and overall monthly cash flow, derived from income sources,
obligations and debts.

DESIGN DECISION: References to bank accounts are soft. Removing an account
does not cascade, so an obligation or income source may point at an id
that no longer exists. Those rows are reported as unlinked here instead of
being silently dropped.
"""

from decimal import Decimal
from typing import Iterable, Optional

from kingme.calculations.freedom import (
    ZERO,
    _num,
    _whole_days,
    calculate_liquid_assets,
    total,
)
from kingme.models.profile import (
    BankAccount,
    IncomeFrequency,
    IncomeSource,
    Obligation,
    UserProfile,
)
from kingme.models.reports import (
    AccountStatus,
    CashFlowAnalysis,
    HealthStatus,
    OverallCashFlow,
)

DAYS_PER_MONTH = Decimal("30")
SAVINGS_FLOOR = Decimal("500")
TIGHT_RUNWAY_DAYS = 30
COMFORTABLE_RUNWAY_DAYS = 90

# Multiplier from one payment to a monthly amount
MONTHLY_FACTORS = {
    IncomeFrequency.WEEKLY: Decimal("52") / Decimal("12"),
    IncomeFrequency.BIWEEKLY: Decimal("26") / Decimal("12"),
    IncomeFrequency.TWICE_MONTHLY: Decimal("2"),
    IncomeFrequency.MONTHLY: Decimal("1"),
    IncomeFrequency.QUARTERLY: Decimal("1") / Decimal("3"),
}


def _usd(amount: Decimal) -> str:
    return f"${amount:.0f}"


@total
def monthly_amount(source: IncomeSource) -> Decimal:
    return _num(_num(source.amount) * MONTHLY_FACTORS.get(source.frequency, ZERO))


@total
def get_monthly_income_for_account(
    sources: Iterable[IncomeSource],
    bank_account_id: str,
) -> Decimal:
    return _num(sum(
        (monthly_amount(s) for s in sources if s.bank_account_id == bank_account_id),
        ZERO,
    ))


@total
def get_monthly_obligations_for_account(
    obligations: Iterable[Obligation],
    bank_account_id: str,
) -> Decimal:
    return _num(sum(
        (_num(o.amount) for o in obligations if o.bank_account_id == bank_account_id),
        ZERO,
    ))


@total
def analyze_account(
    account: BankAccount,
    sources: list[IncomeSource],
    obligations: list[Obligation],
) -> CashFlowAnalysis:
    """
    Cash flow through one account.

    Runway is balance / daily outflow, or None when nothing drains the
    account. Debts are not tied to accounts and are only counted overall.
    """
    balance = _num(account.current_balance)
    monthly_income = get_monthly_income_for_account(sources, account.id)
    monthly_obligations = get_monthly_obligations_for_account(obligations, account.id)
    monthly_net = _num(monthly_income - monthly_obligations)

    daily_burn = _num(monthly_obligations / DAYS_PER_MONTH)
    days_of_runway: Optional[int] = None
    if daily_burn > ZERO:
        days_of_runway = _whole_days(balance / daily_burn)

    warnings = []
    status = AccountStatus.HEALTHY

    if monthly_income > ZERO and monthly_income < monthly_obligations:
        warnings.append(
            f"Income ({_usd(monthly_income)}) doesn't cover obligations "
            f"({_usd(monthly_obligations)}). Losing {_usd(_num(monthly_obligations - monthly_income))}/mo."
        )
        status = AccountStatus.DEFICIT
    elif monthly_income > ZERO and days_of_runway is not None:
        if days_of_runway < TIGHT_RUNWAY_DAYS:
            warnings.append(f"Only {days_of_runway} days of runway. Balance is low.")
            status = AccountStatus.TIGHT
        elif days_of_runway < COMFORTABLE_RUNWAY_DAYS:
            warnings.append(f"{days_of_runway} days runway. Aim for {COMFORTABLE_RUNWAY_DAYS}+ days.")
            status = AccountStatus.TIGHT

    if monthly_net > ZERO and (days_of_runway is None or days_of_runway >= COMFORTABLE_RUNWAY_DAYS):
        runway = "unlimited" if days_of_runway is None else f"{days_of_runway} days"
        warnings.append(f"Saving {_usd(monthly_net)}/mo with {runway} runway.")

    return CashFlowAnalysis(
        account=account,
        monthly_income=monthly_income,
        monthly_obligations=monthly_obligations,
        monthly_net=monthly_net,
        current_balance=balance,
        days_of_runway=days_of_runway,
        status=status,
        warnings=warnings,
    )


def _health(
    profile: UserProfile,
    total_income: Decimal,
    total_net: Decimal,
    total_outflow: Decimal,
    liquid_assets: Decimal,
) -> tuple[HealthStatus, str, list[str]]:
    if total_income == ZERO:
        if not profile.income_sources:
            return (
                HealthStatus.CRITICAL,
                "No income tracked yet. Add your salary or other income.",
                ["Add an income source and link it to an account"],
            )
        return (
            HealthStatus.CRITICAL,
            "Income sources exist but aren't linked to any account.",
            ["Verify each income source has a destination account"],
        )

    if total_net < ZERO:
        return (
            HealthStatus.CRITICAL,
            f"You're spending {_usd(abs(total_net))}/month more than you earn. This needs fixing first.",
            [
                "Increase income or cut obligations",
                "Review recurring expenses for cuts",
                "Focus on cash flow before investing",
            ],
        )

    if total_net < SAVINGS_FLOOR:
        return (
            HealthStatus.STRUGGLING,
            f"You're covering bills but only saving {_usd(total_net)}/month. Tight but survivable.",
            [
                "Build an emergency fund (target: 3 months)",
                "Look for ways to increase income",
                "Hold off on new asset purchases for now",
            ],
        )

    if total_outflow <= ZERO:
        return (
            HealthStatus.THRIVING,
            f"No monthly outflow, saving {_usd(total_net)}/month. Invest aggressively.",
            ["Maximize investment in income-generating assets"],
        )

    months = _num(liquid_assets / total_outflow)
    if months < 3:
        return (
            HealthStatus.STABLE,
            f"Saving {_usd(total_net)}/month. Build your emergency fund to 3 months first.",
            [
                f"Need {_usd(_num(total_outflow * 3 - liquid_assets))} more for 3-month runway",
                "Keep emergency fund in high-yield savings",
                "After runway is solid, start investing surplus",
            ],
        )
    if months < 6:
        return (
            HealthStatus.BUILDING,
            f"{months:.1f} months runway, saving {_usd(total_net)}/month. Ready to start investing.",
            [
                "Start putting surplus into income-generating assets",
                "Keep growing your emergency fund toward 6 months",
            ],
        )
    return (
        HealthStatus.THRIVING,
        f"{months:.1f} months runway, saving {_usd(total_net)}/month. Invest aggressively.",
        [
            "Maximize investment in income-generating assets",
            "Diversify across crypto, stocks, real estate",
            f"Goal: get passive income to {_usd(total_outflow)}/month",
        ],
    )


@total
def analyze_all_accounts(profile: UserProfile) -> OverallCashFlow:
    """Full cash flow analysis across every account in the snapshot."""
    accounts = [
        analyze_account(account, profile.income_sources, profile.obligations)
        for account in profile.bank_accounts
    ]
    known_ids = {a.id for a in profile.bank_accounts}

    total_income = _num(sum((a.monthly_income for a in accounts), ZERO))
    total_obligations = _num(sum((a.monthly_obligations for a in accounts), ZERO))
    total_debt = _num(sum((_num(d.monthly_payment) for d in profile.debts), ZERO))
    total_net = _num(total_income - total_obligations - total_debt)
    total_balance = _num(sum((a.current_balance for a in accounts), ZERO))
    liquid_assets = calculate_liquid_assets(profile)

    unlinked_obligations = [
        o for o in profile.obligations if o.bank_account_id not in known_ids
    ]
    unlinked_income_ids = [
        s.id for s in profile.income_sources if s.bank_account_id not in known_ids
    ]

    status, message, recommendations = _health(
        profile,
        total_income,
        total_net,
        _num(total_obligations + total_debt),
        liquid_assets,
    )
    if unlinked_obligations:
        recommendations.insert(
            0, f"{len(unlinked_obligations)} obligation(s) not assigned to an account"
        )

    return OverallCashFlow(
        total_monthly_income=total_income,
        total_monthly_obligations=total_obligations,
        total_monthly_debt_payments=total_debt,
        total_monthly_net=total_net,
        total_balance=total_balance,
        liquid_assets=liquid_assets,
        unlinked_obligations=unlinked_obligations,
        unlinked_income_source_ids=unlinked_income_ids,
        accounts=accounts,
        health_status=status,
        health_message=message,
        recommendations=recommendations,
    )
