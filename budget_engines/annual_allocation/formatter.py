"""
Shapes accumulated allocations into usage and monthly-allocation records.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from budget_engines.annual_allocation.models import (
    AnnualBudgetUsage,
    CategoryAllocation,
    MonthlyAllocation,
)
from budget_kernel.domain.annual import AnnualBudgetConfig
from budget_kernel.domain.values import ZERO, rate, safe_subtract


class AllocationFormatter:
    def make_usage(
        self,
        config: AnnualBudgetConfig,
        used_amount: Decimal,
        category_allocations: Sequence[CategoryAllocation],
    ) -> AnnualBudgetUsage:
        return AnnualBudgetUsage(
            year=config.year,
            total_amount=config.total_amount,
            used_amount=used_amount,
            remaining_amount=safe_subtract(config.total_amount, used_amount),
            usage_rate=rate(used_amount, config.total_amount),
            category_allocations=tuple(category_allocations),
        )

    def make_disabled_usage(self, config: AnnualBudgetConfig) -> AnnualBudgetUsage:
        return AnnualBudgetUsage(
            year=config.year,
            total_amount=config.total_amount,
            used_amount=ZERO,
            remaining_amount=config.total_amount,
            usage_rate=0.0,
            category_allocations=(),
        )

    def make_monthly_allocation(
        self,
        month: int,
        usage: AnnualBudgetUsage,
        category_allocations: Sequence[CategoryAllocation],
    ) -> MonthlyAllocation:
        return MonthlyAllocation(
            year=usage.year,
            month=month,
            annual_budget_usage=usage,
            category_allocations=tuple(category_allocations),
        )
