"""
Module: budget_engines
Responsibility:
    Package entrypoint that re-exports the public calculation engines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import budget_kernel (and sibling engine modules).

Invariants enforced:
    - Engines never call ``datetime.now()`` or ``date.today()``; "today" comes
      from an injected ``Clock``.
    - Decimal-only arithmetic for money; floats only for display rates.
    - Identical inputs produce identical outputs, with or without a cache.

Audit relevance:
    Public entry points are wrapped by ``@traced_engine`` and emit
    BUDGET_ENGINE_TRACE log records.

Usage:
    from budget_engines import BudgetCalculator, BudgetCalculationCache
    from budget_engines.annual_allocation import AnnualBudgetAllocator
"""

from budget_engines.aggregation import (
    UNCATEGORIZED_NAME,
    AnnualSummary,
    CategorySummary,
    MonthlySummary,
    TransactionAggregator,
)
from budget_engines.budget import (
    BudgetCalculation,
    BudgetCalculator,
    CategoryBudgetCalculation,
    MonthlyBudgetCalculation,
    RecurringPaymentSavingsCalculation,
    calculate_budget,
)
from budget_engines.cache import (
    BudgetCalculationCache,
    BudgetCalculationCacheMetrics,
    CacheTarget,
    CacheVersionHasher,
)
from budget_engines.period import BusinessDayAdjustment, MonthPeriod, MonthPeriodCalculator
from budget_engines.progress import (
    AnnualBudgetEntry,
    AnnualBudgetProgressCalculator,
    AnnualBudgetProgressResult,
)
from budget_engines.recurring_balance import (
    BalanceSnapshotCache,
    DifferenceType,
    PaymentDifference,
    PaymentResult,
    RecurringPaymentBalanceService,
)
from budget_engines.tracer import traced_engine

__all__ = [
    "AnnualBudgetEntry",
    "AnnualBudgetProgressCalculator",
    "AnnualBudgetProgressResult",
    "AnnualSummary",
    "BalanceSnapshotCache",
    "BudgetCalculation",
    "BudgetCalculationCache",
    "BudgetCalculationCacheMetrics",
    "BudgetCalculator",
    "BusinessDayAdjustment",
    "CacheTarget",
    "CacheVersionHasher",
    "CategoryBudgetCalculation",
    "CategorySummary",
    "DifferenceType",
    "MonthPeriod",
    "MonthPeriodCalculator",
    "MonthlyBudgetCalculation",
    "MonthlySummary",
    "PaymentDifference",
    "PaymentResult",
    "RecurringPaymentBalanceService",
    "RecurringPaymentSavingsCalculation",
    "TransactionAggregator",
    "UNCATEGORIZED_NAME",
    "calculate_budget",
    "traced_engine",
]
