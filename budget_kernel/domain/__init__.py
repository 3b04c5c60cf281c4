"""
Pure domain layer.

Immutable records and decimal money helpers with no dependency on
persistence, the wall clock (other than the injectable ``Clock``) or I/O.
"""

from budget_kernel.domain.annual import (
    AllocationDraft,
    AllocationFinalizationError,
    AllocationFinalizationResult,
    AnnualBudgetAllocation,
    AnnualBudgetConfig,
    AnnualBudgetPolicy,
    finalize_allocations,
)
from budget_kernel.domain.calendar import BusinessDayProvider, WeekendCalendar
from budget_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from budget_kernel.domain.models import (
    DEFAULT_FILTER,
    OVERALL,
    AggregationFilter,
    Budget,
    BudgetScope,
    Category,
    CategoryScope,
    CategoryTree,
    OverallScope,
    Transaction,
    as_category_tree,
)
from budget_kernel.domain.recurring import (
    OccurrenceStatus,
    RecurringPaymentDefinition,
    RecurringPaymentOccurrence,
    RecurringPaymentSavingBalance,
    SavingStrategy,
)

__all__ = [
    "AggregationFilter",
    "AllocationDraft",
    "AllocationFinalizationError",
    "AllocationFinalizationResult",
    "AnnualBudgetAllocation",
    "AnnualBudgetConfig",
    "AnnualBudgetPolicy",
    "Budget",
    "BudgetScope",
    "BusinessDayProvider",
    "Category",
    "CategoryScope",
    "CategoryTree",
    "Clock",
    "DEFAULT_FILTER",
    "DeterministicClock",
    "OVERALL",
    "OccurrenceStatus",
    "OverallScope",
    "RecurringPaymentDefinition",
    "RecurringPaymentOccurrence",
    "RecurringPaymentSavingBalance",
    "SavingStrategy",
    "SystemClock",
    "Transaction",
    "WeekendCalendar",
    "as_category_tree",
    "finalize_allocations",
]
