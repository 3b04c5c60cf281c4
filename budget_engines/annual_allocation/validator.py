"""
Preconditions and derived settings for an allocation run.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from budget_engines.annual_allocation.models import AllocationCalculationParams
from budget_kernel.domain.annual import AnnualBudgetPolicy
from budget_kernel.exceptions import DuplicateAllocationCategoryError
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.annual_allocation.validator")


@dataclass(frozen=True)
class AllocationContext:
    year: int
    end_month: int
    policy: AnnualBudgetPolicy
    policy_overrides: dict[UUID, AnnualBudgetPolicy]
    allocation_amounts: dict[UUID, Decimal]

    @property
    def allocated_category_ids(self) -> frozenset[UUID]:
        return frozenset(self.allocation_amounts)

    def effective_policy(self, category_id: UUID) -> AnnualBudgetPolicy:
        return self.policy_overrides.get(category_id, self.policy)

    @property
    def is_policy_completely_disabled(self) -> bool:
        return self.policy is AnnualBudgetPolicy.DISABLED and not self.policy_overrides


def sanitize_end_month(up_to_month: int | None) -> int:
    """Clamp to 1..12; None means the full year."""
    if up_to_month is None:
        return 12
    return min(max(up_to_month, 1), 12)


class AllocationValidator:
    def make_context(
        self,
        params: AllocationCalculationParams,
        up_to_month: int | None = None,
    ) -> AllocationContext:
        """Build the run context.

        Raises:
            DuplicateAllocationCategoryError: the config lists a category twice.
        """
        config = params.annual_budget_config
        duplicates = config.duplicate_category_ids()
        if duplicates:
            logger.error("annual_allocation_duplicate_categories", extra={
                "year": config.year,
                "category_ids": sorted(str(c) for c in duplicates),
            })
            raise DuplicateAllocationCategoryError(config.year, duplicates)

        return AllocationContext(
            year=config.year,
            end_month=sanitize_end_month(up_to_month),
            policy=config.policy,
            policy_overrides=config.policy_overrides,
            allocation_amounts=config.allocation_amounts,
        )
