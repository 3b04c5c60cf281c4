"""
Module: budget_engines.progress
Responsibility:
    Year-level budget-vs-actual: how far through each annualized budget the
    household is, overall and per category.

Architecture position:
    Engines -- pure calculation layer, zero I/O. Reuses the aggregator and
    the budget calculation rules of ``budget_engines.budget``.

Invariants enforced:
    - A budget's yearly amount is its monthly amount times the months it is
      active in that year; budgets not active in the year are ignored.
    - Category actuals use the same major/minor rollup as the monthly
      calculation.
    - Category entries are ordered by (parent order, own order, full name).

Failure modes:
    - None. No budgets in the year yields an empty result.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from uuid import UUID

from budget_engines.aggregation import TransactionAggregator
from budget_engines.budget import (
    BudgetCalculation,
    calculate_budget,
    excluded_expense,
    rolled_up_expense,
)
from budget_engines.tracer import traced_engine
from budget_kernel.domain.models import (
    DEFAULT_FILTER,
    AggregationFilter,
    Budget,
    Category,
    CategoryTree,
    Transaction,
    as_category_tree,
)
from budget_kernel.domain.values import ZERO, safe_subtract, safe_sum
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.progress")

OVERALL_BUDGET_TITLE = "全体予算"


@dataclass(frozen=True)
class AnnualBudgetEntry:
    category_id: UUID | None
    budget: Budget
    title: str
    calculation: BudgetCalculation
    display_order_key: tuple[int, int, str]

    @property
    def is_overall_budget(self) -> bool:
        return self.category_id is None


@dataclass(frozen=True)
class AnnualBudgetProgressResult:
    overall_entry: AnnualBudgetEntry | None = None
    category_entries: tuple[AnnualBudgetEntry, ...] = ()
    aggregate_calculation: BudgetCalculation | None = None


class AnnualBudgetProgressCalculator:
    def __init__(self, aggregator: TransactionAggregator | None = None):
        self.aggregator = aggregator or TransactionAggregator()

    @traced_engine("progress", "1.0", fingerprint_fields=("year", "filter"))
    def calculate(
        self,
        *,
        budgets: Sequence[Budget],
        transactions: Sequence[Transaction],
        categories: CategoryTree | Iterable[Category] = (),
        year: int,
        filter: AggregationFilter = DEFAULT_FILTER,
        excluded_category_ids: Iterable[UUID] = frozenset(),
    ) -> AnnualBudgetProgressResult:
        t0 = time.monotonic()
        annual_budgets = [b for b in budgets if b.overlaps(year)]
        if not annual_budgets:
            return AnnualBudgetProgressResult()

        tree = as_category_tree(categories)
        summary = self.aggregator.aggregate_annually(
            transactions=transactions, categories=tree, year=year, filter=filter
        )
        expense_by_category = summary.expense_by_category_id()

        overall_entry = None
        overall_budgets = [b for b in annual_budgets if b.is_overall]
        if overall_budgets:
            actual = safe_subtract(
                summary.total_expense,
                excluded_expense(excluded_category_ids, expense_by_category),
            )
            overall_entry = AnnualBudgetEntry(
                category_id=None,
                budget=overall_budgets[0],
                title=OVERALL_BUDGET_TITLE,
                calculation=calculate_budget(
                    safe_sum(b.annual_budget_amount(year) for b in overall_budgets),
                    max(ZERO, actual),
                ),
                display_order_key=(-1, -1, OVERALL_BUDGET_TITLE),
            )

        grouped: dict[UUID, list[Budget]] = {}
        for budget in annual_budgets:
            if budget.category_id is not None:
                grouped.setdefault(budget.category_id, []).append(budget)

        category_entries: list[AnnualBudgetEntry] = []
        for category_id, items in grouped.items():
            title = tree.full_name(category_id)
            if title is None:
                logger.warning("budget_category_not_found", extra={
                    "category_id": str(category_id),
                })
                continue
            category_entries.append(
                AnnualBudgetEntry(
                    category_id=category_id,
                    budget=items[0],
                    title=title,
                    calculation=calculate_budget(
                        safe_sum(b.annual_budget_amount(year) for b in items),
                        rolled_up_expense(category_id, tree, expense_by_category),
                    ),
                    display_order_key=tree.display_order_key(category_id),
                )
            )
        category_entries.sort(key=lambda e: e.display_order_key)

        aggregate = None
        if overall_entry is not None:
            aggregate = overall_entry.calculation
        elif category_entries:
            aggregate = calculate_budget(
                safe_sum(e.calculation.budget_amount for e in category_entries),
                safe_sum(e.calculation.actual_amount for e in category_entries),
            )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("annual_progress_calculated", extra={
            "year": year,
            "category_entry_count": len(category_entries),
            "has_overall_budget": overall_entry is not None,
            "duration_ms": duration_ms,
        })

        return AnnualBudgetProgressResult(
            overall_entry=overall_entry,
            category_entries=tuple(category_entries),
            aggregate_calculation=aggregate,
        )
