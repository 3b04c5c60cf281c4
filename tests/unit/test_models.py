"""
Tests for category tree, transactions, budgets and the aggregation filter.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from budget_kernel.domain.models import (
    DEFAULT_FILTER,
    AggregationFilter,
    Budget,
    Category,
    CategoryScope,
    CategoryTree,
    Transaction,
)
from budget_kernel.exceptions import CategoryHierarchyError

from tests.builders import budget, expense, income, major, minor


class TestCategoryTree:
    """Flat category table with derived children index."""

    def setup_method(self):
        self.food = major("食費", order=1)
        self.groceries = minor("食料品", self.food, order=2)
        self.dining = minor("外食", self.food, order=1)
        self.tree = CategoryTree([self.food, self.groceries, self.dining])

    def test_full_name_of_minor(self):
        assert self.tree.full_name(self.groceries.id) == "食費 > 食料品"

    def test_full_name_of_major(self):
        assert self.tree.full_name(self.food.id) == "食費"

    def test_full_name_of_unknown_is_none(self):
        assert self.tree.full_name(uuid4()) is None

    def test_full_name_of_orphan_minor_is_own_name(self):
        orphan = Category(id=uuid4(), name="孤児", parent_id=uuid4())
        tree = CategoryTree([orphan])
        assert tree.full_name(orphan.id) == "孤児"

    def test_children_ordered_by_display_order(self):
        assert self.tree.children_ids(self.food.id) == (self.dining.id, self.groceries.id)

    def test_children_of_minor_is_empty(self):
        assert self.tree.children_ids(self.dining.id) == ()

    def test_display_order_key_places_major_before_children(self):
        keys = sorted(
            [self.groceries.id, self.food.id, self.dining.id],
            key=self.tree.display_order_key,
        )
        assert keys == [self.food.id, self.dining.id, self.groceries.id]

    def test_is_major_by_id(self):
        assert self.tree.is_major(self.food.id)
        assert not self.tree.is_major(self.dining.id)
        assert not self.tree.is_major(uuid4())

    def test_parent_id_by_id(self):
        assert self.tree.parent_id(self.groceries.id) == self.food.id
        assert self.tree.parent_id(self.food.id) is None
        assert self.tree.parent_id(uuid4()) is None

    def test_check_hierarchy_accepts_two_levels(self):
        self.tree.check_hierarchy()

    def test_check_hierarchy_rejects_missing_parent(self):
        orphan = Category(id=uuid4(), name="孤児", parent_id=uuid4())
        with pytest.raises(CategoryHierarchyError) as exc_info:
            CategoryTree([orphan]).check_hierarchy()
        assert exc_info.value.code == "CATEGORY_HIERARCHY_INVALID"
        assert exc_info.value.category_id == orphan.id

    def test_check_hierarchy_rejects_third_level(self):
        grandchild = minor("深すぎ", self.groceries)
        tree = CategoryTree([self.food, self.groceries, grandchild])
        with pytest.raises(CategoryHierarchyError):
            tree.check_hierarchy()


class TestTransaction:
    def test_income_and_expense_flags(self):
        assert income(1000, date(2025, 1, 1)).is_income
        assert expense(1000, date(2025, 1, 1)).is_expense
        zero = Transaction(id=uuid4(), date=date(2025, 1, 1), amount=Decimal("0"))
        assert not zero.is_income and not zero.is_expense

    def test_effective_category_prefers_minor(self):
        food = major("食費")
        dining = minor("外食", food)
        t = expense(500, date(2025, 1, 1), major_id=food.id, minor_id=dining.id)
        assert t.effective_category_id == dining.id


class TestBudget:
    """Range membership and annualized amounts."""

    def test_contains_inclusive_range_across_years(self):
        b = budget(1000, start=(2024, 11), end=(2025, 2))
        assert b.contains(2024, 11)
        assert b.contains(2025, 2)
        assert not b.contains(2024, 10)
        assert not b.contains(2025, 3)

    def test_months_active_and_annual_amount(self):
        b = budget(1000, start=(2024, 11), end=(2025, 2))
        assert b.months_active(2024) == 2
        assert b.months_active(2025) == 2
        assert b.months_active(2026) == 0
        assert b.annual_budget_amount(2025) == Decimal("2000")
        assert b.total_month_count == 4

    def test_overlaps(self):
        b = budget(1000, start=(2025, 3), end=(2025, 3))
        assert b.overlaps(2025)
        assert not b.overlaps(2024)

    def test_overall_scope(self):
        b = budget(1000)
        assert b.is_overall
        assert b.category_id is None

    def test_category_scope(self):
        food = major("食費")
        b = budget(1000, category=food)
        assert not b.is_overall
        assert b.scope == CategoryScope(food.id)
        assert b.category_id == food.id

    def test_rejects_invalid_month(self):
        with pytest.raises(ValueError, match="start_month"):
            Budget(id=uuid4(), amount=Decimal("1"), start_year=2025, start_month=13,
                   end_year=2025, end_month=12)

    def test_rejects_reversed_period(self):
        with pytest.raises(ValueError, match="starts after it ends"):
            Budget(id=uuid4(), amount=Decimal("1"), start_year=2025, start_month=5,
                   end_year=2025, end_month=4)


class TestAggregationFilter:
    """Filter predicate."""

    def test_default_excludes_non_targets_and_transfers(self):
        day = date(2025, 1, 1)
        assert DEFAULT_FILTER.matches(expense(100, day))
        assert not DEFAULT_FILTER.matches(expense(100, day, is_included_in_calculation=False))
        assert not DEFAULT_FILTER.matches(expense(100, day, is_transfer=True))

    def test_class_default_is_the_module_default(self):
        assert AggregationFilter.DEFAULT is DEFAULT_FILTER
        assert AggregationFilter.DEFAULT == AggregationFilter()

    def test_permissive_filter_keeps_everything(self):
        f = AggregationFilter(include_only_calculation_target=False, exclude_transfers=False)
        day = date(2025, 1, 1)
        assert f.matches(expense(100, day, is_included_in_calculation=False, is_transfer=True))

    def test_institution_filter(self):
        bank = uuid4()
        f = AggregationFilter(financial_institution_id=bank)
        day = date(2025, 1, 1)
        assert f.matches(expense(100, day, financial_institution_id=bank))
        assert not f.matches(expense(100, day, financial_institution_id=uuid4()))
        assert not f.matches(expense(100, day))

    def test_category_filter_matches_major_or_minor(self):
        food = major("食費")
        dining = minor("外食", food)
        day = date(2025, 1, 1)
        by_major = AggregationFilter(category_id=food.id)
        by_minor = AggregationFilter(category_id=dining.id)
        t = expense(100, day, major_id=food.id, minor_id=dining.id)
        assert by_major.matches(t)
        assert by_minor.matches(t)
        assert not by_minor.matches(expense(100, day, major_id=food.id))
