"""
Annual special-budget allocation.

    from budget_engines.annual_allocation import (
        AllocationCalculationParams,
        AnnualBudgetAllocator,
    )

    usage = AnnualBudgetAllocator().calculate_annual_budget_usage(
        AllocationCalculationParams(
            transactions=transactions,
            budgets=budgets,
            categories=categories,
            annual_budget_config=config,
        ),
        up_to_month=6,
    )
"""

from budget_engines.annual_allocation.allocator import AnnualBudgetAllocator
from budget_engines.annual_allocation.category_calculator import (
    CategoryAllocationCalculator,
    calculate_allocation_amounts,
)
from budget_engines.annual_allocation.engine import AccumulationResult, AllocationEngine
from budget_engines.annual_allocation.formatter import AllocationFormatter
from budget_engines.annual_allocation.models import (
    AllocationAmounts,
    AllocationCalculationParams,
    AnnualBudgetUsage,
    CategoryAllocation,
    MonthlyAllocation,
)
from budget_engines.annual_allocation.validator import (
    AllocationContext,
    AllocationValidator,
    sanitize_end_month,
)

__all__ = [
    "AccumulationResult",
    "AllocationAmounts",
    "AllocationCalculationParams",
    "AllocationContext",
    "AllocationEngine",
    "AllocationFormatter",
    "AllocationValidator",
    "AnnualBudgetAllocator",
    "AnnualBudgetUsage",
    "CategoryAllocation",
    "CategoryAllocationCalculator",
    "MonthlyAllocation",
    "calculate_allocation_amounts",
    "sanitize_end_month",
]
