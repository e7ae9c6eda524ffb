"""
Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and read-only.
Every function here is a pure query over the committed transaction log
plus category/wallet metadata. Nothing is cached and nothing is written
back, so a dashboard can never disagree with the ledger it was built from.

Months are calendar months of the transaction's local date, not rolling
30-day windows. An empty month yields zero totals, never an error.
"""

import calendar
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal
from typing import Union

from lumina.models.ledger import (
    AppData,
    Category,
    Transaction,
    TransactionType,
    Wallet,
)
from lumina.models.reports import (
    BudgetStatus,
    CategoryTotal,
    DailyCashFlow,
    MonthlySummary,
)


ZERO = Decimal("0")
HUNDRED = Decimal("100")
BUDGET_WARNING_PERCENT = Decimal("90")
TOP_CATEGORIES_LIMIT = 5

MonthRef = Union[date, datetime]


def local_date(moment: datetime) -> date:
    """Calendar date of a timestamp in local time (naive values are taken as local)."""
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.date()


def in_month(transaction: Transaction, reference_month: MonthRef) -> bool:
    """Does the transaction fall in the reference month's calendar month and year?"""
    day = local_date(transaction.date)
    return day.year == reference_month.year and day.month == reference_month.month


def transactions_in_month(
    transactions: Iterable[Transaction],
    reference_month: MonthRef,
) -> list[Transaction]:
    return [t for t in transactions if in_month(t, reference_month)]


def days_in_month(reference_month: MonthRef) -> int:
    return calendar.monthrange(reference_month.year, reference_month.month)[1]


def total_balance(wallets: Iterable[Wallet]) -> Decimal:
    """
    Sum of all wallet balances.

    No currency conversion happens; with mixed currencies the result
    is approximate.
    """
    return sum((wallet.balance for wallet in wallets), ZERO)


def period_totals(
    transactions: Iterable[Transaction],
    reference_month: MonthRef,
    kind: TransactionType,
) -> Decimal:
    """
    Total income or expense booked in the reference month.

    Raises:
        ValueError: kind is TRANSFER (transfers are neither)
    """
    kind = TransactionType(kind)
    if kind == TransactionType.TRANSFER:
        raise ValueError("period_totals only sums INCOME or EXPENSE")
    return sum(
        (t.amount for t in transactions if t.type == kind and in_month(t, reference_month)),
        ZERO,
    )


def daily_series(
    transactions: Iterable[Transaction],
    reference_month: MonthRef,
    sparse: bool = True,
) -> list[DailyCashFlow]:
    """
    Day-by-day income and expense for the reference month.

    With sparse=True (the chart default) a day is included when it has
    any income or expense, or when it is the 1st, the last, or a
    multiple of 5. With sparse=False every day is returned.
    """
    income = defaultdict(Decimal)
    expense = defaultdict(Decimal)
    for t in transactions:
        if not in_month(t, reference_month):
            continue
        day = local_date(t.date).day
        if t.type == TransactionType.INCOME:
            income[day] += t.amount
        elif t.type == TransactionType.EXPENSE:
            expense[day] += t.amount

    last_day = days_in_month(reference_month)
    series = []
    for day in range(1, last_day + 1):
        day_income = income.get(day, ZERO)
        day_expense = expense.get(day, ZERO)
        keep = (
            not sparse
            or day == 1
            or day == last_day
            or day % 5 == 0
            or day_income > 0
            or day_expense > 0
        )
        if keep:
            series.append(DailyCashFlow(
                day=date(reference_month.year, reference_month.month, day),
                income=day_income,
                expense=day_expense,
            ))
    return series


def top_categories(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
    reference_month: MonthRef,
    limit: int = TOP_CATEGORIES_LIMIT,
) -> list[CategoryTotal]:
    """
    Largest expense categories of the month.

    Grouped by category NAME, so two categories sharing a name merge.
    Expenses whose category id cannot be resolved are left out.
    Ties keep the order in which the names were first seen.
    """
    names = {category.id: category.name for category in categories}
    totals: dict[str, Decimal] = {}
    for t in transactions:
        if t.type != TransactionType.EXPENSE or not in_month(t, reference_month):
            continue
        name = names.get(t.category_id)
        if name is None:
            continue
        totals[name] = totals.get(name, ZERO) + t.amount

    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [
        CategoryTotal(category_name=name, total=total)
        for name, total in ranked[:max(limit, 0)]
    ]


def budget_percent(spent: Decimal, limit: Decimal) -> Decimal:
    """
    Utilization percentage, capped at 100.

    A zero limit is fully used as soon as anything is spent.
    """
    if limit == 0:
        return HUNDRED if spent > 0 else ZERO
    return min(HUNDRED, HUNDRED * spent / limit)


def budget_utilization(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
    reference_month: MonthRef,
    warning_percent: Decimal = BUDGET_WARNING_PERCENT,
) -> list[BudgetStatus]:
    """
    Budget burn-down for every category that has a budget limit.

    over_budget is raised when utilization exceeds warning_percent.
    Spending over the limit is never blocked, only flagged.
    """
    warning_percent = Decimal(warning_percent)
    spent_by_category = defaultdict(Decimal)
    for t in transactions:
        if t.type == TransactionType.EXPENSE and in_month(t, reference_month):
            spent_by_category[t.category_id] += t.amount

    statuses = []
    for category in categories:
        if category.budget_limit is None:
            continue
        spent = spent_by_category.get(category.id, ZERO)
        percent = budget_percent(spent, category.budget_limit)
        statuses.append(BudgetStatus(
            category=category,
            spent=spent,
            limit=category.budget_limit,
            percent=percent,
            over_budget=percent > warning_percent,
        ))
    return statuses


def summarize_month(
    state: AppData,
    reference_month: MonthRef,
    top_limit: int = TOP_CATEGORIES_LIMIT,
    warning_percent: Decimal = BUDGET_WARNING_PERCENT,
    sparse: bool = True,
) -> MonthlySummary:
    """Build the dashboard view model for one month."""
    month_transactions = transactions_in_month(state.transactions, reference_month)
    return MonthlySummary(
        reference_month=date(reference_month.year, reference_month.month, 1),
        total_balance=total_balance(state.wallets),
        income=period_totals(month_transactions, reference_month, TransactionType.INCOME),
        expense=period_totals(month_transactions, reference_month, TransactionType.EXPENSE),
        daily_series=daily_series(month_transactions, reference_month, sparse=sparse),
        top_categories=top_categories(
            month_transactions, state.categories, reference_month, limit=top_limit
        ),
        budgets=budget_utilization(
            month_transactions, state.categories, reference_month,
            warning_percent=warning_percent,
        ),
    )
