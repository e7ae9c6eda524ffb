"""Tests for dashboard aggregation queries."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from lumina.models import Category, TransactionType
from lumina.queries import (
    budget_utilization,
    daily_series,
    local_date,
    period_totals,
    summarize_month,
    top_categories,
    total_balance,
)


MAY = date(2024, 5, 1)


class TestTotals:
    """Tests for balance and period totals."""

    def test_total_balance(self, state):
        """Test total balance is the plain sum of wallet balances."""
        assert total_balance(state.wallets) == Decimal("150.00")

    def test_total_balance_empty(self):
        """Test no wallets means zero."""
        assert total_balance([]) == Decimal("0")

    def test_period_totals_filters_month_and_type(self, make_transaction):
        """Test only the reference month's entries of the given type count."""
        transactions = [
            make_transaction(amount=Decimal("10"), date=datetime(2024, 5, 1, 8)),
            make_transaction(amount=Decimal("15"), date=datetime(2024, 5, 31, 22)),
            make_transaction(amount=Decimal("99"), date=datetime(2024, 4, 30, 23)),
            make_transaction(amount=Decimal("99"), date=datetime(2023, 5, 15)),
            make_transaction(type=TransactionType.INCOME, category_id="c3", amount=Decimal("500")),
        ]
        assert period_totals(transactions, MAY, TransactionType.EXPENSE) == Decimal("25")
        assert period_totals(transactions, MAY, TransactionType.INCOME) == Decimal("500")

    def test_transfers_are_neither_income_nor_expense(self, make_transaction):
        """Test transfers do not show up in either total."""
        transfer = make_transaction(
            type=TransactionType.TRANSFER, category_id=None, to_wallet_id="w2",
        )
        assert period_totals([transfer], MAY, TransactionType.EXPENSE) == Decimal("0")
        assert period_totals([transfer], MAY, TransactionType.INCOME) == Decimal("0")

    def test_period_totals_rejects_transfer_kind(self):
        """Test asking for a TRANSFER total is an error."""
        with pytest.raises(ValueError):
            period_totals([], MAY, TransactionType.TRANSFER)

    def test_empty_period_is_zero(self):
        """Test a month without entries gives zero, not an error."""
        assert period_totals([], MAY, TransactionType.EXPENSE) == Decimal("0")

    def test_local_date_naive_is_unchanged(self):
        """Test naive timestamps are taken as local already."""
        assert local_date(datetime(2024, 5, 31, 23, 59)) == date(2024, 5, 31)


class TestDailySeries:
    """Tests for the daily cash-flow chart data."""

    def test_sparse_series_days(self, make_transaction):
        """Test sparse series keeps anchor days plus active days."""
        transactions = [
            make_transaction(amount=Decimal("5"), date=datetime(2024, 5, 3, 10)),
            make_transaction(type=TransactionType.INCOME, category_id="c3",
                             amount=Decimal("7"), date=datetime(2024, 5, 17, 10)),
        ]
        series = daily_series(transactions, MAY)
        assert [p.day.day for p in series] == [1, 3, 5, 10, 15, 17, 20, 25, 30, 31]

    def test_sparse_series_values(self, make_transaction):
        """Test per-day sums of income and expense."""
        transactions = [
            make_transaction(amount=Decimal("5"), date=datetime(2024, 5, 3, 10)),
            make_transaction(amount=Decimal("2.50"), date=datetime(2024, 5, 3, 18)),
            make_transaction(type=TransactionType.INCOME, category_id="c3",
                             amount=Decimal("7"), date=datetime(2024, 5, 3, 12)),
        ]
        point = next(p for p in daily_series(transactions, MAY) if p.day == date(2024, 5, 3))
        assert point.expense == Decimal("7.50")
        assert point.income == Decimal("7")

    def test_full_series_has_every_day(self):
        """Test sparse=False returns the whole month."""
        series = daily_series([], date(2024, 2, 1), sparse=False)
        assert len(series) == 29
        assert all(p.income == 0 and p.expense == 0 for p in series)

    def test_last_day_of_short_month(self):
        """Test the month's real last day is always included."""
        series = daily_series([], date(2023, 2, 1))
        assert [p.day.day for p in series] == [1, 5, 10, 15, 20, 25, 28]


class TestTopCategories:
    """Tests for the spending breakdown."""

    def test_ranked_descending_with_limit(self, state, make_transaction):
        """Test categories are ranked by spend and cut at the limit."""
        categories = state.categories + (
            Category(id="c4", name="Shopping"),
        )
        transactions = [
            make_transaction(category_id="c1", amount=Decimal("20")),
            make_transaction(category_id="c2", amount=Decimal("50")),
            make_transaction(category_id="c4", amount=Decimal("5")),
        ]
        top = top_categories(transactions, categories, MAY, limit=2)
        assert [(c.category_name, c.total) for c in top] == [
            ("Transportation", Decimal("50")),
            ("Food & Dining", Decimal("20")),
        ]

    def test_same_name_categories_merge(self, make_transaction):
        """Test grouping is by name, so duplicates by name are summed."""
        categories = [Category(id="a", name="Food"), Category(id="b", name="Food")]
        transactions = [
            make_transaction(category_id="a", amount=Decimal("3")),
            make_transaction(category_id="b", amount=Decimal("4")),
        ]
        top = top_categories(transactions, categories, MAY)
        assert len(top) == 1
        assert top[0].total == Decimal("7")

    def test_unknown_categories_excluded(self, state, make_transaction):
        """Test expenses with unresolvable categories are left out."""
        transactions = [make_transaction(category_id="ghost", amount=Decimal("100"))]
        assert top_categories(transactions, state.categories, MAY) == []

    def test_income_and_other_months_ignored(self, state, make_transaction):
        """Test only this month's expenses count."""
        transactions = [
            make_transaction(type=TransactionType.INCOME, category_id="c3"),
            make_transaction(date=datetime(2024, 6, 1, 9)),
        ]
        assert top_categories(transactions, state.categories, MAY) == []

    def test_ties_keep_first_seen_order(self, state, make_transaction):
        """Test equal totals keep the order they were first seen in."""
        transactions = [
            make_transaction(category_id="c2", amount=Decimal("10")),
            make_transaction(category_id="c1", amount=Decimal("10")),
        ]
        top = top_categories(transactions, state.categories, MAY)
        assert [c.category_name for c in top] == ["Transportation", "Food & Dining"]


class TestBudgetUtilization:
    """Tests for budget burn-down."""

    def test_budget_scenario(self, state, make_transaction):
        """Test limit 100, spend 40 + 55 → spent 95, 95%, flagged."""
        transactions = [
            make_transaction(amount=Decimal("40"), date=datetime(2024, 5, 2, 9)),
            make_transaction(amount=Decimal("55"), date=datetime(2024, 5, 20, 9)),
        ]
        statuses = {s.category.id: s for s in budget_utilization(transactions, state.categories, MAY)}
        food = statuses["c1"]
        assert food.spent == Decimal("95")
        assert food.percent == Decimal("95")
        assert food.over_budget is True

    def test_under_warning_threshold(self, state, make_transaction):
        """Test 90% exactly is not flagged."""
        transactions = [make_transaction(amount=Decimal("90"))]
        food = budget_utilization(transactions, state.categories, MAY)[0]
        assert food.percent == Decimal("90")
        assert food.over_budget is False

    def test_percent_capped_at_100(self, state, make_transaction):
        """Test overspending caps the percentage at 100."""
        transactions = [make_transaction(amount=Decimal("250"))]
        food = budget_utilization(transactions, state.categories, MAY)[0]
        assert food.spent == Decimal("250")
        assert food.percent == Decimal("100")

    def test_zero_limit_with_spend(self, state, make_transaction):
        """Test a zero budget with any spend is 100% and flagged."""
        transactions = [make_transaction(category_id="c2", amount=Decimal("0.01"))]
        statuses = {s.category.id: s for s in budget_utilization(transactions, state.categories, MAY)}
        assert statuses["c2"].percent == Decimal("100")
        assert statuses["c2"].over_budget is True

    def test_zero_limit_without_spend(self, state):
        """Test a zero budget with nothing spent is 0% and not flagged."""
        statuses = {s.category.id: s for s in budget_utilization([], state.categories, MAY)}
        assert statuses["c2"].percent == Decimal("0")
        assert statuses["c2"].over_budget is False

    def test_categories_without_limit_skipped(self, state):
        """Test only categories with a budget are reported."""
        ids = [s.category.id for s in budget_utilization([], state.categories, MAY)]
        assert ids == ["c1", "c2"]

    def test_custom_warning_percent(self, state, make_transaction):
        """Test the warning threshold is configurable."""
        transactions = [make_transaction(amount=Decimal("60"))]
        food = budget_utilization(transactions, state.categories, MAY, warning_percent=50)[0]
        assert food.over_budget is True


class TestSummarizeMonth:
    """Tests for the dashboard view model."""

    def test_summary(self, state, make_transaction):
        """Test the summary bundles every dashboard figure."""
        state = state.model_copy(update={"transactions": (
            make_transaction(type=TransactionType.INCOME, category_id="c3", amount=Decimal("200")),
            make_transaction(amount=Decimal("40")),
            make_transaction(amount=Decimal("1000"), date=datetime(2024, 4, 2)),
        )})
        summary = summarize_month(state, datetime(2024, 5, 18, 15))
        assert summary.reference_month == MAY
        assert summary.total_balance == Decimal("150.00")
        assert summary.income == Decimal("200")
        assert summary.expense == Decimal("40")
        assert summary.net == Decimal("160")
        assert summary.top_categories[0].category_name == "Food & Dining"
        assert summary.budgets[0].spent == Decimal("40")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
