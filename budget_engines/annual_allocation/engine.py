"""
Accumulates monthly category allocations into year-to-date totals.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from budget_engines.annual_allocation.category_calculator import (
    CategoryAllocationCalculator,
)
from budget_engines.annual_allocation.models import (
    AllocationCalculationParams,
    CategoryAllocation,
)
from budget_engines.annual_allocation.validator import AllocationContext
from budget_kernel.domain.values import ZERO, safe_add, safe_sum


@dataclass
class _Accumulator:
    category_id: UUID
    category_name: str
    annual_budget_amount: Decimal
    monthly_budget_amount: Decimal = ZERO
    actual_amount: Decimal = ZERO
    excess_amount: Decimal = ZERO
    allocatable_amount: Decimal = ZERO
    remaining_after_allocation: Decimal = ZERO

    def add(self, allocation: CategoryAllocation) -> None:
        self.monthly_budget_amount = safe_add(
            self.monthly_budget_amount, allocation.monthly_budget_amount
        )
        self.actual_amount = safe_add(self.actual_amount, allocation.actual_amount)
        self.excess_amount = safe_add(self.excess_amount, allocation.excess_amount)
        self.allocatable_amount = safe_add(
            self.allocatable_amount, allocation.allocatable_amount
        )
        self.remaining_after_allocation = safe_add(
            self.remaining_after_allocation, allocation.remaining_after_allocation
        )

    def freeze(self) -> CategoryAllocation:
        return CategoryAllocation(
            category_id=self.category_id,
            category_name=self.category_name,
            annual_budget_amount=self.annual_budget_amount,
            monthly_budget_amount=self.monthly_budget_amount,
            actual_amount=self.actual_amount,
            excess_amount=self.excess_amount,
            allocatable_amount=self.allocatable_amount,
            remaining_after_allocation=self.remaining_after_allocation,
        )


@dataclass(frozen=True)
class AccumulationResult:
    total_used: Decimal
    category_allocations: tuple[CategoryAllocation, ...]


class AllocationEngine:
    def __init__(self, category_calculator: CategoryAllocationCalculator | None = None):
        self.category_calculator = category_calculator or CategoryAllocationCalculator()

    def accumulate(
        self,
        params: AllocationCalculationParams,
        context: AllocationContext,
    ) -> AccumulationResult:
        """Fold months 1..end_month into one allocation per category.

        Every category with an allocation line is listed, even without spend.
        Months run strictly in ascending order.
        """
        tree = params.tree
        accumulators: dict[UUID, _Accumulator] = {}
        for allocation in params.annual_budget_config.allocations:
            if allocation.category_id not in tree:
                continue
            accumulators[allocation.category_id] = _Accumulator(
                category_id=allocation.category_id,
                category_name=tree.full_name(allocation.category_id) or "",
                annual_budget_amount=allocation.amount,
            )

        total_used = ZERO
        for month in range(1, context.end_month + 1):
            monthly = self.category_calculator.calculate_month(params, context, month)
            total_used = safe_add(total_used, safe_sum(a.allocatable_amount for a in monthly))
            for allocation in monthly:
                accumulator = accumulators.get(allocation.category_id)
                if accumulator is None:
                    accumulator = _Accumulator(
                        category_id=allocation.category_id,
                        category_name=allocation.category_name,
                        annual_budget_amount=allocation.annual_budget_amount,
                    )
                    accumulators[allocation.category_id] = accumulator
                accumulator.add(allocation)

        ordered = sorted(
            accumulators.values(), key=lambda a: (a.category_name, str(a.category_id))
        )
        return AccumulationResult(
            total_used=total_used,
            category_allocations=tuple(a.freeze() for a in ordered),
        )
