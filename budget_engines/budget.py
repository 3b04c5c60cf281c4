"""
Module: budget_engines.budget
Responsibility:
    Combine aggregated actuals with budget definitions into budget-vs-actual
    results per period and category (with major/minor rollups), and project
    recurring-payment savings figures.

Architecture position:
    Engines -- pure calculation layer. The only state is the optional
    injected ``BudgetCalculationCache``; "today" comes from an injected Clock.

Invariants enforced:
    - usage_rate is never negative and is 0 when the budget is not positive.
    - A major category's actual is its own spend plus every child's spend; a
      minor category's actual is its own spend only.
    - The overall actual excludes spend in ``excluded_category_ids`` and is
      floored at 0.
    - Results with and without the cache are identical.

Failure modes:
    - None. Category budgets for categories unknown to the tree are skipped
      (logged at WARNING); an empty input yields zero totals.

Usage:
    calculator = BudgetCalculator(cache=BudgetCalculationCache())
    result = calculator.calculate_monthly_budget(
        transactions=transactions,
        budgets=budgets,
        categories=categories,
        year=2025,
        month=4,
    )
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from budget_engines.aggregation import TransactionAggregator
from budget_engines.cache import (
    BudgetCalculationCache,
    BudgetCalculationCacheMetrics,
    CacheTarget,
    CacheVersionHasher,
    MonthlyBudgetCacheKey,
    RecurringSavingsCacheKey,
    SavingsAllocationCacheKey,
)
from budget_engines.tracer import traced_engine
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.domain.models import (
    DEFAULT_FILTER,
    AggregationFilter,
    Budget,
    Category,
    CategoryTree,
    Transaction,
    as_category_tree,
)
from budget_kernel.domain.recurring import (
    RecurringPaymentDefinition,
    RecurringPaymentOccurrence,
    RecurringPaymentSavingBalance,
)
from budget_kernel.domain.values import (
    ZERO,
    rate,
    safe_add,
    safe_subtract,
    safe_sum,
)
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.budget")


@dataclass(frozen=True)
class BudgetCalculation:
    budget_amount: Decimal
    actual_amount: Decimal
    remaining_amount: Decimal
    usage_rate: float
    is_over_budget: bool


@dataclass(frozen=True)
class CategoryBudgetCalculation:
    category_id: UUID
    category_name: str
    calculation: BudgetCalculation


@dataclass(frozen=True)
class MonthlyBudgetCalculation:
    year: int
    month: int
    overall_calculation: BudgetCalculation | None
    category_calculations: tuple[CategoryBudgetCalculation, ...]


@dataclass(frozen=True)
class RecurringPaymentSavingsCalculation:
    definition_id: UUID
    name: str
    monthly_saving: Decimal
    total_saved: Decimal
    total_paid: Decimal
    balance: Decimal
    next_occurrence: date | None


def calculate_budget(budget_amount: Decimal, actual_amount: Decimal) -> BudgetCalculation:
    """Budget vs actual for one line.

    Negative actuals (net refunds) produce a usage rate of 0, not a negative
    rate.
    """
    usage_rate = max(0.0, rate(actual_amount, budget_amount))
    return BudgetCalculation(
        budget_amount=budget_amount,
        actual_amount=actual_amount,
        remaining_amount=safe_subtract(budget_amount, actual_amount),
        usage_rate=usage_rate,
        is_over_budget=actual_amount > budget_amount,
    )


def rolled_up_expense(
    category_id: UUID,
    tree: CategoryTree,
    expense_by_category: Mapping[UUID, Decimal],
) -> Decimal:
    """Spend for a category: majors include all children, minors are exact."""
    own = expense_by_category.get(category_id, ZERO)
    category = tree.get(category_id)
    if category is None or category.is_minor:
        return own
    return safe_add(
        own,
        safe_sum(expense_by_category.get(c, ZERO) for c in tree.children_ids(category_id)),
    )


def excluded_expense(
    excluded_category_ids: Iterable[UUID],
    expense_by_category: Mapping[UUID, Decimal],
) -> Decimal:
    return safe_sum(expense_by_category.get(c, ZERO) for c in set(excluded_category_ids))


def next_occurrence(
    occurrences: Iterable[RecurringPaymentOccurrence], today: date
) -> RecurringPaymentOccurrence | None:
    upcoming = [o for o in occurrences if o.scheduled_date >= today and not o.is_completed]
    return min(upcoming, key=lambda o: o.scheduled_date, default=None)


class BudgetCalculator:
    """
    Budget-vs-actual and savings calculations.

    Contract:
        Callers must invalidate the matching cache targets after mutating
        inputs, unless the mutation bumps ``updated_at`` (which changes the
        version hash and therefore the key).
    """

    def __init__(
        self,
        aggregator: TransactionAggregator | None = None,
        cache: BudgetCalculationCache | None = None,
        clock: Clock | None = None,
    ):
        self.aggregator = aggregator or TransactionAggregator()
        self.cache = cache
        self.clock = clock or SystemClock()

    def calculate(self, budget_amount: Decimal, actual_amount: Decimal) -> BudgetCalculation:
        return calculate_budget(budget_amount, actual_amount)

    def will_exceed_budget(
        self,
        category: Category | None,
        amount: Decimal,
        current_expense: Decimal,
        budget_amount: Decimal,
    ) -> bool:
        """Whether adding ``amount`` pushes the category over its budget."""
        return safe_add(current_expense, amount) > budget_amount

    # -- monthly budget ----------------------------------------------------

    @traced_engine("budget", "1.0", fingerprint_fields=("year", "month", "filter", "excluded_category_ids"))
    def calculate_monthly_budget(
        self,
        *,
        transactions: Sequence[Transaction],
        budgets: Sequence[Budget],
        categories: CategoryTree | Iterable[Category] = (),
        year: int,
        month: int,
        filter: AggregationFilter = DEFAULT_FILTER,
        excluded_category_ids: Iterable[UUID] = frozenset(),
    ) -> MonthlyBudgetCalculation:
        tree = as_category_tree(categories)
        excluded = frozenset(excluded_category_ids)

        key = None
        if self.cache is not None:
            key = MonthlyBudgetCacheKey(
                year=year,
                month=month,
                filter=filter,
                period_signature=CacheVersionHasher.period_signature(
                    self.aggregator.period_calculator
                ),
                excluded_categories_signature=CacheVersionHasher.id_set_signature(excluded),
                transactions_version=CacheVersionHasher.version(transactions),
                budgets_version=CacheVersionHasher.version(budgets),
                categories_version=CacheVersionHasher.categories_version(tree),
            )
            cached = self.cache.cached_monthly_budget(key)
            if cached is not None:
                return cached

        result = self._compute_monthly_budget(
            transactions, budgets, tree, year, month, filter, excluded
        )
        if self.cache is not None:
            self.cache.store_monthly_budget(key, result)
        return result

    def _compute_monthly_budget(
        self,
        transactions: Sequence[Transaction],
        budgets: Sequence[Budget],
        tree: CategoryTree,
        year: int,
        month: int,
        filter: AggregationFilter,
        excluded: frozenset[UUID],
    ) -> MonthlyBudgetCalculation:
        t0 = time.monotonic()
        summary = self.aggregator.aggregate_monthly(
            transactions=transactions,
            categories=tree,
            year=year,
            month=month,
            filter=filter,
        )
        expense_by_category = summary.expense_by_category_id()
        active = [b for b in budgets if b.contains(year, month)]

        overall_calculation = None
        overall_budget = next((b for b in active if b.is_overall), None)
        if overall_budget is not None:
            actual = safe_subtract(
                summary.total_expense, excluded_expense(excluded, expense_by_category)
            )
            overall_calculation = calculate_budget(overall_budget.amount, max(ZERO, actual))

        category_calculations: list[CategoryBudgetCalculation] = []
        for budget in active:
            category_id = budget.category_id
            if category_id is None:
                continue
            name = tree.full_name(category_id)
            if name is None:
                logger.warning("budget_category_not_found", extra={
                    "budget_id": str(budget.id),
                    "category_id": str(category_id),
                })
                continue
            actual = rolled_up_expense(category_id, tree, expense_by_category)
            category_calculations.append(
                CategoryBudgetCalculation(
                    category_id=category_id,
                    category_name=name,
                    calculation=calculate_budget(budget.amount, actual),
                )
            )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("monthly_budget_calculated", extra={
            "year": year,
            "month": month,
            "has_overall_budget": overall_calculation is not None,
            "category_budget_count": len(category_calculations),
            "duration_ms": duration_ms,
        })

        return MonthlyBudgetCalculation(
            year=year,
            month=month,
            overall_calculation=overall_calculation,
            category_calculations=tuple(category_calculations),
        )

    # -- recurring payments ------------------------------------------------

    @traced_engine("budget", "1.0", fingerprint_fields=("year", "month"))
    def calculate_recurring_payment_savings(
        self,
        *,
        definitions: Sequence[RecurringPaymentDefinition],
        balances: Sequence[RecurringPaymentSavingBalance],
        year: int,
        month: int,
    ) -> tuple[RecurringPaymentSavingsCalculation, ...]:
        today = self.clock.today()

        key = None
        if self.cache is not None:
            key = RecurringSavingsCacheKey(
                year=year,
                month=month,
                reference_date=today,
                definitions_version=CacheVersionHasher.definitions_version(definitions),
                balances_version=CacheVersionHasher.version(balances),
            )
            cached = self.cache.cached_recurring_payment_savings(key)
            if cached is not None:
                return cached

        balance_by_definition = {b.definition_id: b for b in balances}
        rows: list[RecurringPaymentSavingsCalculation] = []
        for definition in definitions:
            balance = balance_by_definition.get(definition.id)
            total_saved = balance.total_saved_amount if balance else ZERO
            total_paid = balance.total_paid_amount if balance else ZERO
            upcoming = next_occurrence(definition.occurrences, today)
            rows.append(
                RecurringPaymentSavingsCalculation(
                    definition_id=definition.id,
                    name=definition.name,
                    monthly_saving=definition.monthly_saving_amount,
                    total_saved=total_saved,
                    total_paid=total_paid,
                    balance=safe_subtract(total_saved, total_paid),
                    next_occurrence=upcoming.scheduled_date if upcoming else None,
                )
            )

        result = tuple(rows)
        if self.cache is not None:
            self.cache.store_recurring_payment_savings(key, result)
        return result

    @traced_engine("budget", "1.0", fingerprint_fields=("year", "month"))
    def calculate_monthly_savings_allocation(
        self,
        *,
        definitions: Sequence[RecurringPaymentDefinition],
        year: int,
        month: int,
    ) -> Decimal:
        key = None
        if self.cache is not None:
            key = SavingsAllocationCacheKey(
                year=year,
                month=month,
                definitions_version=CacheVersionHasher.definitions_version(definitions),
            )
            cached = self.cache.cached_monthly_savings(key)
            if cached is not None:
                return cached

        total = safe_sum(
            d.monthly_saving_amount for d in definitions if d.is_saving_enabled
        )
        if self.cache is not None:
            self.cache.store_monthly_savings(key, total)
        return total

    @traced_engine("budget", "1.0", fingerprint_fields=("year", "month"))
    def calculate_category_savings_allocation(
        self,
        *,
        definitions: Sequence[RecurringPaymentDefinition],
        year: int,
        month: int,
    ) -> dict[UUID, Decimal]:
        key = None
        if self.cache is not None:
            key = SavingsAllocationCacheKey(
                year=year,
                month=month,
                definitions_version=CacheVersionHasher.definitions_version(definitions),
            )
            cached = self.cache.cached_category_savings(key)
            if cached is not None:
                return cached

        by_category: dict[UUID, Decimal] = {}
        for definition in definitions:
            if definition.category_id is None or not definition.is_saving_enabled:
                continue
            by_category[definition.category_id] = safe_add(
                by_category.get(definition.category_id, ZERO),
                definition.monthly_saving_amount,
            )

        if self.cache is not None:
            self.cache.store_category_savings(key, by_category)
        return by_category

    # -- cache control -----------------------------------------------------

    def invalidate_cache(self, targets: CacheTarget = CacheTarget.ALL) -> None:
        if self.cache is not None:
            self.cache.invalidate(targets)

    def cache_metrics(self) -> BudgetCalculationCacheMetrics | None:
        if self.cache is None:
            return None
        return self.cache.metrics_snapshot()
