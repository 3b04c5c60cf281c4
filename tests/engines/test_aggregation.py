"""
Tests for transaction filtering and summaries.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from budget_engines.aggregation import UNCATEGORIZED_NAME, TransactionAggregator
from budget_engines.period import MonthPeriodCalculator
from budget_kernel.domain.models import AggregationFilter, Category, CategoryTree

from tests.builders import expense, income, major, minor


class TestMonthlyAggregation:
    """Totals and category grouping for one month."""

    def setup_method(self):
        self.food = major("食費", order=1)
        self.dining = minor("外食", self.food)
        self.housing = major("住居", order=2)
        self.tree = CategoryTree([self.food, self.dining, self.housing])
        self.aggregator = TransactionAggregator()

    def test_income_expense_and_count(self):
        transactions = [
            income(300000, date(2025, 4, 25)),
            expense(80000, date(2025, 4, 27), major_id=self.housing.id),
            expense(1200, date(2025, 4, 3), major_id=self.food.id, minor_id=self.dining.id),
            expense(999, date(2025, 5, 1), major_id=self.food.id),
        ]
        summary = self.aggregator.aggregate_monthly(
            transactions=transactions, categories=self.tree, year=2025, month=4
        )
        assert summary.total_income == Decimal("300000")
        assert summary.total_expense == Decimal("81200")
        assert summary.net_amount == Decimal("218800")
        assert summary.transaction_count == 3

    def test_groups_sorted_by_expense_descending(self):
        transactions = [
            expense(1200, date(2025, 4, 3), major_id=self.food.id, minor_id=self.dining.id),
            expense(80000, date(2025, 4, 27), major_id=self.housing.id),
        ]
        summary = self.aggregator.aggregate_monthly(
            transactions=transactions, categories=self.tree, year=2025, month=4
        )
        names = [s.category_name for s in summary.category_summaries]
        assert names == ["住居", "食費 > 外食"]
        assert summary.expense_by_category_id() == {
            self.housing.id: Decimal("80000"),
            self.dining.id: Decimal("1200"),
        }

    def test_unknown_minor_falls_back_to_major(self):
        t = expense(500, date(2025, 4, 3), major_id=self.food.id, minor_id=uuid4())
        summary = self.aggregator.aggregate_monthly(
            transactions=[t], categories=self.tree, year=2025, month=4
        )
        assert summary.category_summaries[0].category_id == self.food.id

    def test_uncategorized_group(self):
        summary = self.aggregator.aggregate_monthly(
            transactions=[expense(500, date(2025, 4, 3))],
            categories=self.tree,
            year=2025,
            month=4,
        )
        group = summary.category_summaries[0]
        assert group.category_name == UNCATEGORIZED_NAME
        assert group.category_id is None
        assert summary.expense_by_category_id() == {}

    def test_same_name_categories_are_not_merged(self):
        first = Category(id=uuid4(), name="雑費")
        second = Category(id=uuid4(), name="雑費")
        transactions = [
            expense(100, date(2025, 4, 1), major_id=first.id),
            expense(100, date(2025, 4, 2), major_id=second.id),
        ]
        summary = self.aggregator.aggregate_monthly(
            transactions=transactions, categories=[first, second], year=2025, month=4
        )
        assert len(summary.category_summaries) == 2

    def test_zero_amount_only_counts(self):
        t = expense(0, date(2025, 4, 1), major_id=self.food.id)
        summary = self.aggregator.aggregate_monthly(
            transactions=[t], categories=self.tree, year=2025, month=4
        )
        assert summary.total_expense == Decimal("0")
        assert summary.total_income == Decimal("0")
        assert summary.transaction_count == 1

    def test_empty_month(self):
        summary = self.aggregator.aggregate_monthly(
            transactions=[], categories=self.tree, year=2025, month=4
        )
        assert summary.transaction_count == 0
        assert summary.category_summaries == ()


class TestFilterApplication:
    def test_default_filter_drops_transfers_and_non_targets(self):
        aggregator = TransactionAggregator()
        day = date(2025, 4, 10)
        transactions = [
            expense(100, day),
            expense(200, day, is_transfer=True),
            expense(400, day, is_included_in_calculation=False),
        ]
        selected = aggregator.transactions_in_month(transactions, 2025, 4)
        assert len(selected) == 1

    def test_custom_filter(self):
        aggregator = TransactionAggregator()
        day = date(2025, 4, 10)
        transactions = [expense(100, day), expense(200, day, is_transfer=True)]
        keep_all = AggregationFilter(exclude_transfers=False)
        assert len(aggregator.transactions_in_month(transactions, 2025, 4, keep_all)) == 2


class TestCustomPeriodSelection:
    """A 25th-start month selects by the custom range, not the calendar month."""

    def test_transactions_selected_by_period(self):
        aggregator = TransactionAggregator(MonthPeriodCalculator(month_start_day=25))
        transactions = [
            expense(100, date(2025, 4, 24)),
            expense(200, date(2025, 4, 25)),
            expense(400, date(2025, 5, 24)),
            expense(800, date(2025, 5, 25)),
        ]
        selected = aggregator.transactions_in_month(transactions, 2025, 4)
        assert sorted(t.absolute_amount for t in selected) == [Decimal("200"), Decimal("400")]

    def test_unconstructible_period_selects_nothing(self):
        aggregator = TransactionAggregator(MonthPeriodCalculator())
        assert aggregator.transactions_in_month([expense(1, date(2025, 1, 1))], 2025, 13) == []


class TestAnnualAggregation:
    def test_annual_totals_and_monthly_split(self):
        food = major("食費")
        aggregator = TransactionAggregator()
        transactions = [
            expense(1000, date(2025, 1, 5), major_id=food.id),
            expense(2000, date(2025, 7, 5), major_id=food.id),
            income(5000, date(2025, 7, 25)),
            expense(9999, date(2024, 12, 31), major_id=food.id),
        ]
        summary = aggregator.aggregate_annually(
            transactions=transactions, categories=[food], year=2025
        )
        assert summary.total_expense == Decimal("3000")
        assert summary.total_income == Decimal("5000")
        assert summary.transaction_count == 3
        assert len(summary.monthly_summaries) == 12
        assert summary.monthly_summaries[6].total_expense == Decimal("2000")
        assert summary.monthly_summaries[1].transaction_count == 0
        assert summary.expense_by_category_id() == {food.id: Decimal("3000")}

    def test_annual_keeps_rows_a_permissive_filter_let_through(self):
        aggregator = TransactionAggregator()
        t = expense(100, date(2025, 3, 1), is_included_in_calculation=False)
        summary = aggregator.aggregate_annually(
            transactions=[t],
            categories=[],
            year=2025,
            filter=AggregationFilter(include_only_calculation_target=False),
        )
        assert summary.monthly_summaries[2].total_expense == Decimal("100")
