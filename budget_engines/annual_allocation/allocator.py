"""
Public entry points for annual special-budget allocation.
"""

from __future__ import annotations

import time

from budget_engines.annual_allocation.category_calculator import (
    CategoryAllocationCalculator,
)
from budget_engines.annual_allocation.engine import AllocationEngine
from budget_engines.annual_allocation.formatter import AllocationFormatter
from budget_engines.annual_allocation.models import (
    AllocationCalculationParams,
    AnnualBudgetUsage,
    MonthlyAllocation,
)
from budget_engines.annual_allocation.validator import AllocationValidator
from budget_engines.tracer import traced_engine
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.annual_allocation")


class AnnualBudgetAllocator:
    """
    Distributes the annual pool across categories.

    Contract:
        Stateless; safe to share between threads.

    Raises:
        DuplicateAllocationCategoryError: from either entry point when the
            config lists a category twice.
    """

    def __init__(
        self,
        validator: AllocationValidator | None = None,
        engine: AllocationEngine | None = None,
        formatter: AllocationFormatter | None = None,
    ):
        self.validator = validator or AllocationValidator()
        self.engine = engine or AllocationEngine()
        self.formatter = formatter or AllocationFormatter()

    @property
    def category_calculator(self) -> CategoryAllocationCalculator:
        return self.engine.category_calculator

    @traced_engine("annual_allocation", "1.0", fingerprint_fields=("up_to_month",))
    def calculate_annual_budget_usage(
        self,
        params: AllocationCalculationParams,
        up_to_month: int | None = None,
    ) -> AnnualBudgetUsage:
        """Pool usage for months 1..up_to_month (default: the whole year)."""
        t0 = time.monotonic()
        config = params.annual_budget_config
        context = self.validator.make_context(params, up_to_month)

        if context.is_policy_completely_disabled:
            logger.info("annual_allocation_disabled", extra={"year": config.year})
            return self.formatter.make_disabled_usage(config)

        logger.info("annual_allocation_started", extra={
            "year": config.year,
            "end_month": context.end_month,
            "policy": config.policy.value,
            "allocation_count": len(config.allocations),
        })

        result = self.engine.accumulate(params, context)
        usage = self.formatter.make_usage(
            config, result.total_used, result.category_allocations
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("annual_allocation_completed", extra={
            "year": config.year,
            "end_month": context.end_month,
            "used_amount": str(usage.used_amount),
            "remaining_amount": str(usage.remaining_amount),
            "duration_ms": duration_ms,
        })
        return usage

    @traced_engine("annual_allocation", "1.0", fingerprint_fields=("month",))
    def calculate_monthly_allocation(
        self,
        params: AllocationCalculationParams,
        month: int,
    ) -> MonthlyAllocation:
        """This month's category allocations and the pool usage through it."""
        usage = self.calculate_annual_budget_usage(params, up_to_month=month)
        context = self.validator.make_context(params, month)
        allocations = self.category_calculator.calculate_month(
            params, context, context.end_month
        )
        return self.formatter.make_monthly_allocation(context.end_month, usage, allocations)
