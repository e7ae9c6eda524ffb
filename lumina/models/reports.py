"""
Dashboard View Models

Read-only results of the aggregation queries. Nothing here feeds
back into ledger state.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from lumina.models.ledger import Category


class ReportModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class DailyCashFlow(ReportModel):
    """Income and expense booked on one calendar day."""

    day: date
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")


class CategoryTotal(ReportModel):
    """Expense total for one category name."""

    category_name: str
    total: Decimal


class BudgetStatus(ReportModel):
    """
    Budget burn-down for one category in one month.

    percent is capped at 100. over_budget is a warning flag raised above
    the warning threshold, not a hard cap.
    """

    category: Category
    spent: Decimal
    limit: Decimal
    percent: Decimal = Field(ge=0, le=100)
    over_budget: bool


class MonthlySummary(ReportModel):
    """Everything the dashboard shows for one reference month."""

    reference_month: date
    total_balance: Decimal
    income: Decimal
    expense: Decimal
    daily_series: list[DailyCashFlow] = Field(default_factory=list)
    top_categories: list[CategoryTotal] = Field(default_factory=list)
    budgets: list[BudgetStatus] = Field(default_factory=list)

    @property
    def net(self) -> Decimal:
        return self.income - self.expense
