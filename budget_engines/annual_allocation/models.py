"""
Result and parameter types for the annual allocation engine.

All records are frozen. ``CategoryAllocation`` is used both for a single
month and for a year-to-date accumulation; in the latter every amount except
``annual_budget_amount`` is a sum over months.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from budget_kernel.domain.annual import AnnualBudgetConfig
from budget_kernel.domain.models import (
    DEFAULT_FILTER,
    AggregationFilter,
    Budget,
    Category,
    CategoryTree,
    Transaction,
    as_category_tree,
)
from budget_kernel.domain.values import ZERO, rate, safe_subtract


@dataclass(frozen=True)
class AllocationAmounts:
    """Outcome of applying one policy to one (actual, budget) pair."""

    excess: Decimal = ZERO
    allocatable: Decimal = ZERO
    remaining_after_allocation: Decimal = ZERO


@dataclass(frozen=True)
class CategoryAllocation:
    category_id: UUID
    category_name: str
    annual_budget_amount: Decimal
    monthly_budget_amount: Decimal
    actual_amount: Decimal
    excess_amount: Decimal
    allocatable_amount: Decimal
    remaining_after_allocation: Decimal

    @property
    def annual_budget_remaining_amount(self) -> Decimal:
        """Negative when the category has drawn more than its allocation."""
        return safe_subtract(self.annual_budget_amount, self.allocatable_amount)

    @property
    def annual_budget_usage_rate(self) -> float:
        return rate(self.allocatable_amount, self.annual_budget_amount)


@dataclass(frozen=True)
class AnnualBudgetUsage:
    year: int
    total_amount: Decimal
    used_amount: Decimal
    remaining_amount: Decimal
    usage_rate: float
    category_allocations: tuple[CategoryAllocation, ...] = ()


@dataclass(frozen=True)
class MonthlyAllocation:
    """One month's allocations plus the pool usage through that month."""

    year: int
    month: int
    annual_budget_usage: AnnualBudgetUsage
    category_allocations: tuple[CategoryAllocation, ...]


@dataclass(frozen=True)
class AllocationCalculationParams:
    """Inputs shared by every month of an allocation run."""

    transactions: Sequence[Transaction]
    budgets: Sequence[Budget]
    categories: CategoryTree | Iterable[Category]
    annual_budget_config: AnnualBudgetConfig
    filter: AggregationFilter = DEFAULT_FILTER

    def __post_init__(self) -> None:
        object.__setattr__(self, "categories", as_category_tree(self.categories))
        object.__setattr__(self, "transactions", tuple(self.transactions))
        object.__setattr__(self, "budgets", tuple(self.budgets))

    @property
    def tree(self) -> CategoryTree:
        return self.categories  # normalized in __post_init__

    @property
    def year(self) -> int:
        return self.annual_budget_config.year
