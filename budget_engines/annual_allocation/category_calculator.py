"""
One month of annual-pool allocation, category by category.

Three passes run in order and share a ``processed`` set so that no category
is allocated twice in a month:

1. Categories with a monthly budget active this month.
2. Categories whose allocation line overrides the policy to full coverage,
   in full-name order.
3. Any other category with an allocation line and spend this month.

Passes 2 and 3 compute against a monthly budget of 0.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from budget_engines.aggregation import TransactionAggregator
from budget_engines.annual_allocation.models import (
    AllocationAmounts,
    AllocationCalculationParams,
    CategoryAllocation,
)
from budget_engines.annual_allocation.validator import AllocationContext
from budget_kernel.domain.annual import AnnualBudgetPolicy
from budget_kernel.domain.models import Category, CategoryTree, Transaction
from budget_kernel.domain.values import ZERO, safe_add, safe_subtract, safe_sum
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.annual_allocation.category")


def calculate_allocation_amounts(
    policy: AnnualBudgetPolicy,
    actual_amount: Decimal,
    budget_amount: Decimal,
) -> AllocationAmounts:
    """The single definition of what each policy draws from the pool."""
    match policy:
        case AnnualBudgetPolicy.AUTOMATIC:
            excess = max(ZERO, safe_subtract(actual_amount, budget_amount))
            return AllocationAmounts(
                excess=excess, allocatable=excess, remaining_after_allocation=ZERO
            )
        case AnnualBudgetPolicy.MANUAL:
            excess = max(ZERO, safe_subtract(actual_amount, budget_amount))
            return AllocationAmounts(
                excess=excess, allocatable=ZERO, remaining_after_allocation=excess
            )
        case AnnualBudgetPolicy.FULL_COVERAGE:
            return AllocationAmounts(
                excess=actual_amount,
                allocatable=actual_amount,
                remaining_after_allocation=ZERO,
            )
        case AnnualBudgetPolicy.DISABLED:
            return AllocationAmounts()


@dataclass
class ExpenseMaps:
    """Spend per category plus the children each major was seen with."""

    by_category: dict[UUID, Decimal] = field(default_factory=dict)
    child_fallback: dict[UUID, set[UUID]] = field(default_factory=dict)

    @classmethod
    def build(cls, transactions: Iterable[Transaction], tree: CategoryTree) -> ExpenseMaps:
        maps = cls()
        for transaction in transactions:
            if not transaction.is_expense:
                continue
            amount = transaction.absolute_amount
            minor_id = transaction.minor_category_id
            if minor_id is not None:
                maps._add(minor_id, amount)
                parent_id = transaction.major_category_id
                if parent_id is None:
                    minor = tree.get(minor_id)
                    parent_id = minor.parent_id if minor else None
                if parent_id is not None:
                    maps.child_fallback.setdefault(parent_id, set()).add(minor_id)
            elif transaction.major_category_id is not None:
                maps._add(transaction.major_category_id, amount)
        return maps

    def _add(self, category_id: UUID, amount: Decimal) -> None:
        self.by_category[category_id] = safe_add(
            self.by_category.get(category_id, ZERO), amount
        )

    def expense(self, category_id: UUID) -> Decimal:
        return self.by_category.get(category_id, ZERO)


class CategoryAllocationCalculator:
    def __init__(self, aggregator: TransactionAggregator | None = None):
        self.aggregator = aggregator or TransactionAggregator()

    def calculate_month(
        self,
        params: AllocationCalculationParams,
        context: AllocationContext,
        month: int,
    ) -> list[CategoryAllocation]:
        if context.is_policy_completely_disabled:
            return []

        tree = params.tree
        year = context.year
        selected = self.aggregator.transactions_in_month(
            params.transactions, year, month, params.filter
        )
        maps = ExpenseMaps.build(selected, tree)
        processed: set[UUID] = set()

        allocations = self._budgeted_pass(params, context, maps, month, processed)
        allocations += self._full_coverage_pass(params, context, maps, processed)
        allocations += self._unbudgeted_pass(params, context, maps, processed)

        logger.debug("annual_allocation_month_calculated", extra={
            "year": year,
            "month": month,
            "transaction_count": len(selected),
            "allocation_count": len(allocations),
        })
        return allocations

    # -- passes ------------------------------------------------------------

    def _budgeted_pass(
        self,
        params: AllocationCalculationParams,
        context: AllocationContext,
        maps: ExpenseMaps,
        month: int,
        processed: set[UUID],
    ) -> list[CategoryAllocation]:
        tree = params.tree
        allocations: list[CategoryAllocation] = []
        for budget in params.budgets:
            category_id = budget.category_id
            if category_id is None or category_id in processed:
                continue
            if not budget.contains(context.year, month):
                continue
            category = tree.get(category_id)
            if category is None:
                continue
            eligible = category.allows_annual_budget or category_id in context.allocation_amounts
            if not eligible:
                continue
            policy = context.effective_policy(category_id)
            if policy is AnnualBudgetPolicy.DISABLED:
                continue

            allocations.append(
                self._allocate(category, tree, context, maps, policy, budget.amount)
            )
            processed.add(category_id)
        return allocations

    def _full_coverage_pass(
        self,
        params: AllocationCalculationParams,
        context: AllocationContext,
        maps: ExpenseMaps,
        processed: set[UUID],
    ) -> list[CategoryAllocation]:
        tree = params.tree
        candidates = [
            a
            for a in params.annual_budget_config.allocations
            if a.policy_override is AnnualBudgetPolicy.FULL_COVERAGE and a.category_id in tree
        ]
        candidates.sort(key=lambda a: tree.full_name(a.category_id) or "")

        allocations: list[CategoryAllocation] = []
        for allocation in candidates:
            category_id = allocation.category_id
            if category_id in processed:
                continue
            if context.effective_policy(category_id) is not AnnualBudgetPolicy.FULL_COVERAGE:
                continue
            category = tree.get(category_id)
            if self.actual_amount(category, tree, context, maps) <= 0:
                continue
            allocations.append(
                self._allocate(
                    category, tree, context, maps, AnnualBudgetPolicy.FULL_COVERAGE, ZERO
                )
            )
            processed.add(category_id)
        return allocations

    def _unbudgeted_pass(
        self,
        params: AllocationCalculationParams,
        context: AllocationContext,
        maps: ExpenseMaps,
        processed: set[UUID],
    ) -> list[CategoryAllocation]:
        tree = params.tree
        allocations: list[CategoryAllocation] = []
        for allocation in params.annual_budget_config.allocations:
            category_id = allocation.category_id
            if category_id in processed:
                continue
            category = tree.get(category_id)
            if category is None:
                logger.warning("annual_allocation_category_not_found", extra={
                    "category_id": str(category_id),
                })
                continue
            policy = context.effective_policy(category_id)
            if policy is AnnualBudgetPolicy.DISABLED:
                continue
            if self.actual_amount(category, tree, context, maps) <= 0:
                continue
            allocations.append(self._allocate(category, tree, context, maps, policy, ZERO))
            processed.add(category_id)
        return allocations

    # -- helpers -----------------------------------------------------------

    def actual_amount(
        self,
        category: Category,
        tree: CategoryTree,
        context: AllocationContext,
        maps: ExpenseMaps,
    ) -> Decimal:
        """Spend attributed to a category this month.

        A major adds its children's spend, except children that carry their
        own allocation line. When the tree declares no children for a major,
        the children observed on this month's transactions are used instead.
        """
        own = maps.expense(category.id)
        if category.is_minor:
            return own
        children = tree.children_ids(category.id) or tuple(
            sorted(maps.child_fallback.get(category.id, ()), key=str)
        )
        return safe_add(
            own,
            safe_sum(
                maps.expense(child_id)
                for child_id in children
                if child_id not in context.allocated_category_ids
            ),
        )

    def _allocate(
        self,
        category: Category,
        tree: CategoryTree,
        context: AllocationContext,
        maps: ExpenseMaps,
        policy: AnnualBudgetPolicy,
        budget_amount: Decimal,
    ) -> CategoryAllocation:
        actual = self.actual_amount(category, tree, context, maps)
        amounts = calculate_allocation_amounts(policy, actual, budget_amount)
        return CategoryAllocation(
            category_id=category.id,
            category_name=tree.full_name(category.id) or category.name,
            annual_budget_amount=context.allocation_amounts.get(category.id, ZERO),
            monthly_budget_amount=budget_amount,
            actual_amount=actual,
            excess_amount=amounts.excess,
            allocatable_amount=amounts.allocatable,
            remaining_after_allocation=amounts.remaining_after_allocation,
        )
