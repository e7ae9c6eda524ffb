"""Read-only aggregation queries package."""

from lumina.queries.aggregation import (
    BUDGET_WARNING_PERCENT,
    TOP_CATEGORIES_LIMIT,
    budget_percent,
    budget_utilization,
    daily_series,
    local_date,
    period_totals,
    summarize_month,
    top_categories,
    total_balance,
    transactions_in_month,
)

__all__ = [
    "BUDGET_WARNING_PERCENT",
    "TOP_CATEGORIES_LIMIT",
    "budget_percent",
    "budget_utilization",
    "daily_series",
    "local_date",
    "period_totals",
    "summarize_month",
    "top_categories",
    "total_balance",
    "transactions_in_month",
]
