"""
Derived views over plain records: budget status, spending aggregation,
month-over-month change, investment returns and subscription costs.

Every calculator is a pure function of its arguments. Zero denominators never
raise and never produce NaN or Infinity; each calculator documents the
sentinel it returns instead.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from models import SubscriptionCycle, TransactionDirection
from periods import month_key, month_period, previous_month_key
from recurrence import days_until, next_renewal_date
from schemas import (
    BudgetIn,
    InvestmentRecord,
    SubscriptionRecord,
    TransactionRecord,
)

WARNING_THRESHOLD = 80.0
EXCEEDED_THRESHOLD = 100.0
DAYS_PER_YEAR = 365.25

CENT = Decimal("0.01")
ZERO = Decimal("0")


def money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _pct(value: float) -> float:
    return round(value, 2)


# Budgets


@dataclass(frozen=True)
class LimitStatus:
    label: str
    limit: Decimal
    spent: Decimal
    remaining: Decimal
    percentage_used: float
    warning: bool
    exceeded: bool


@dataclass(frozen=True)
class BudgetStatus:
    month: str
    total: LimitStatus
    categories: list[LimitStatus]


def percentage_used(spent: Decimal, limit: Decimal) -> float:
    """
    Share of ``limit`` consumed. A zero limit yields 0.0 while nothing is
    spent and 100.0 as soon as anything is, so it reads as exceeded.
    """
    if limit <= 0:
        return EXCEEDED_THRESHOLD if spent > 0 else 0.0
    return float(spent / limit * 100)


def limit_status(label: str, limit: Decimal, spent: Decimal) -> LimitStatus:
    used = percentage_used(spent, limit)
    return LimitStatus(
        label=label,
        limit=money(limit),
        spent=money(spent),
        remaining=money(max(ZERO, limit - spent)),
        percentage_used=_pct(used),
        warning=WARNING_THRESHOLD <= used < EXCEEDED_THRESHOLD,
        exceeded=used >= EXCEEDED_THRESHOLD,
    )


def _outflows_in(
    transactions: Iterable[TransactionRecord], month: str
) -> list[TransactionRecord]:
    period = month_period(month)
    return [
        txn
        for txn in transactions
        if txn.direction == TransactionDirection.outflow and period.contains(txn.date)
    ]


def budget_status(
    budget: BudgetIn, transactions: Iterable[TransactionRecord]
) -> BudgetStatus:
    outflows = _outflows_in(transactions, budget.month)
    spent_by_category = category_totals(outflows)
    total_spent = sum((txn.amount for txn in outflows), ZERO)

    categories = [
        limit_status(
            item.category, item.limit, spent_by_category.get(item.category, ZERO)
        )
        for item in budget.category_limits
    ]
    return BudgetStatus(
        month=budget.month,
        total=limit_status("Overall", budget.total_limit, total_spent),
        categories=categories,
    )


# Aggregation


@dataclass(frozen=True)
class CategoryAmount:
    category: str
    amount: Decimal


@dataclass(frozen=True)
class MonthAmount:
    month: str
    amount: Decimal


@dataclass(frozen=True)
class MonthlyTotals:
    month: str
    income: Decimal
    spending: Decimal

    @property
    def net(self) -> Decimal:
        return self.income - self.spending


@dataclass(frozen=True)
class IncomeExpense:
    income: list[MonthAmount]
    expense: list[MonthAmount]


def category_totals(transactions: Iterable[TransactionRecord]) -> dict[str, Decimal]:
    """Outflow sums keyed by category."""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for txn in transactions:
        if txn.direction == TransactionDirection.outflow:
            totals[txn.category] += txn.amount
    return dict(totals)


def spending_by_category(
    transactions: Iterable[TransactionRecord],
) -> list[CategoryAmount]:
    totals = category_totals(transactions)
    rows = [
        CategoryAmount(category, money(amount)) for category, amount in totals.items()
    ]
    rows.sort(key=lambda row: (-row.amount, row.category))
    return rows


def monthly_totals(
    transactions: Iterable[TransactionRecord], month_keys: Sequence[str]
) -> list[MonthlyTotals]:
    """Income and spending per month of the window; idle months report zero."""
    income: dict[str, Decimal] = defaultdict(lambda: ZERO)
    spending: dict[str, Decimal] = defaultdict(lambda: ZERO)
    window = set(month_keys)
    for txn in transactions:
        key = month_key(txn.date)
        if key not in window:
            continue
        if txn.direction == TransactionDirection.outflow:
            spending[key] += txn.amount
        else:
            income[key] += txn.amount
    return [
        MonthlyTotals(
            key, money(income.get(key, ZERO)), money(spending.get(key, ZERO))
        )
        for key in month_keys
    ]


def monthly_trend(
    transactions: Iterable[TransactionRecord], month_keys: Sequence[str]
) -> list[MonthAmount]:
    return [
        MonthAmount(row.month, row.spending)
        for row in monthly_totals(transactions, month_keys)
    ]


def income_expense(
    transactions: Iterable[TransactionRecord], month_keys: Sequence[str]
) -> IncomeExpense:
    rows = monthly_totals(transactions, month_keys)
    return IncomeExpense(
        income=[MonthAmount(row.month, row.income) for row in rows],
        expense=[MonthAmount(row.month, row.spending) for row in rows],
    )


def month_over_month_change(current: Decimal, previous: Decimal) -> float:
    """
    Percent change against the previous month. Returns 0.0 when the previous
    month is zero, which also hides growth from nothing.
    """
    if previous == 0:
        return 0.0
    change = (Decimal(current) - Decimal(previous)) / Decimal(previous) * 100
    return _pct(float(change))


@dataclass(frozen=True)
class MonthlySummary:
    month: str
    total_spending: Decimal
    total_income: Decimal
    net_balance: Decimal
    category_spending: dict[str, Decimal]
    weekday_spending: Decimal
    weekend_spending: Decimal
    month_over_month_change: float
    transaction_count: int


def monthly_summary(
    transactions: Iterable[TransactionRecord],
    month: str,
    previous_transactions: Optional[Iterable[TransactionRecord]] = None,
) -> MonthlySummary:
    period = month_period(month)
    in_month = [txn for txn in transactions if period.contains(txn.date)]

    spending = income = weekday = weekend = ZERO
    for txn in in_month:
        if txn.direction == TransactionDirection.outflow:
            spending += txn.amount
            if txn.date.weekday() >= 5:
                weekend += txn.amount
            else:
                weekday += txn.amount
        else:
            income += txn.amount

    previous_spending = ZERO
    if previous_transactions is not None:
        previous_outflows = _outflows_in(
            previous_transactions, previous_month_key(month)
        )
        previous_spending = sum((txn.amount for txn in previous_outflows), ZERO)

    return MonthlySummary(
        month=month,
        total_spending=money(spending),
        total_income=money(income),
        net_balance=money(income - spending),
        category_spending={
            category: money(amount)
            for category, amount in category_totals(in_month).items()
        },
        weekday_spending=money(weekday),
        weekend_spending=money(weekend),
        month_over_month_change=month_over_month_change(spending, previous_spending),
        transaction_count=len(in_month),
    )


# Investments


def gain_loss(current_value: Decimal, initial_amount: Decimal) -> Decimal:
    return Decimal(current_value) - Decimal(initial_amount)


def return_percent(current_value: Decimal, initial_amount: Decimal) -> float:
    if initial_amount == 0:
        return 0.0
    gain = gain_loss(current_value, initial_amount)
    return float(gain / Decimal(initial_amount) * 100)


def years_between(start: date, end: date) -> float:
    return (end - start).days / DAYS_PER_YEAR


def cagr(
    current_value: Decimal,
    initial_amount: Decimal,
    investment_date: date,
    as_of: date,
) -> float:
    """
    Compound annual growth rate as a fraction (0.25 == 25%). Returns 0.0 when
    no time has elapsed or nothing was invested. A rate too large for a float,
    such as a tenfold gain within a day, also yields 0.0.
    """
    years = years_between(investment_date, as_of)
    if years <= 0 or initial_amount == 0:
        return 0.0
    ratio = float(current_value) / float(initial_amount)
    try:
        return ratio ** (1 / years) - 1
    except OverflowError:
        return 0.0


def portfolio_allocation(values: Sequence[Decimal]) -> list[float]:
    """Each value's share of the total in percent; all zero for an empty total."""
    total = sum((Decimal(v) for v in values), ZERO)
    if total == 0:
        return [0.0 for _ in values]
    return [float(Decimal(v) / total * 100) for v in values]


@dataclass(frozen=True)
class HoldingMetrics:
    id: Optional[int]
    name: str
    initial_amount: Decimal
    current_value: Decimal
    investment_date: date
    gain_loss: Decimal
    return_percent: float
    cagr_percent: float
    allocation_percent: float


@dataclass(frozen=True)
class PortfolioOverview:
    holdings: list[HoldingMetrics]
    total_invested: Decimal
    total_value: Decimal
    total_gain_loss: Decimal
    total_return_percent: float


def portfolio_overview(
    investments: Sequence[InvestmentRecord], as_of: date
) -> PortfolioOverview:
    allocations = portfolio_allocation([inv.current_value for inv in investments])
    holdings = [
        HoldingMetrics(
            id=inv.id,
            name=inv.name,
            initial_amount=money(inv.initial_amount),
            current_value=money(inv.current_value),
            investment_date=inv.investment_date,
            gain_loss=money(gain_loss(inv.current_value, inv.initial_amount)),
            return_percent=_pct(return_percent(inv.current_value, inv.initial_amount)),
            cagr_percent=_pct(
                cagr(inv.current_value, inv.initial_amount, inv.investment_date, as_of)
                * 100
            ),
            allocation_percent=allocation,
        )
        for inv, allocation in zip(investments, allocations)
    ]
    invested = sum((inv.initial_amount for inv in investments), ZERO)
    value = sum((inv.current_value for inv in investments), ZERO)
    return PortfolioOverview(
        holdings=holdings,
        total_invested=money(invested),
        total_value=money(value),
        total_gain_loss=money(gain_loss(value, invested)),
        total_return_percent=_pct(return_percent(value, invested)),
    )


# Subscriptions


@dataclass(frozen=True)
class SubscriptionStatus:
    id: Optional[int]
    name: str
    amount: Decimal
    cycle: SubscriptionCycle
    start_date: date
    next_renewal_date: date
    days_until_renewal: int
    monthly_cost: Decimal


@dataclass(frozen=True)
class SubscriptionOverview:
    subscriptions: list[SubscriptionStatus]
    total_monthly_cost: Decimal


def monthly_cost(amount: Decimal, cycle: SubscriptionCycle) -> Decimal:
    if cycle == SubscriptionCycle.yearly:
        return Decimal(amount) / 12
    return Decimal(amount)


def subscription_overview(
    subscriptions: Iterable[SubscriptionRecord], today: date
) -> SubscriptionOverview:
    rows: list[SubscriptionStatus] = []
    for sub in subscriptions:
        renewal = next_renewal_date(sub.start_date, sub.cycle, today=today)
        rows.append(
            SubscriptionStatus(
                id=sub.id,
                name=sub.name,
                amount=money(sub.amount),
                cycle=sub.cycle,
                start_date=sub.start_date,
                next_renewal_date=renewal,
                days_until_renewal=days_until(renewal, today=today),
                monthly_cost=money(monthly_cost(sub.amount, sub.cycle)),
            )
        )
    rows.sort(key=lambda row: (row.next_renewal_date, row.name))
    total = sum((monthly_cost(sub.amount, sub.cycle) for sub in rows), ZERO)
    return SubscriptionOverview(subscriptions=rows, total_monthly_cost=money(total))
