"""
Module: budget_engines.aggregation
Responsibility:
    Filter transactions and sum them into per-category, per-month and
    per-year summaries. Every other engine selects "this month's
    transactions" through ``TransactionAggregator.transactions_in_month`` so
    that month membership and filtering are defined in one place.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Income sums the signed amounts of positive transactions; expense sums
      the absolute amounts of negative transactions. Zero-amount lines count
      toward ``transaction_count`` only.
    - Category groups are keyed by (full name, id): two categories that
      share a display name are never merged.
    - Category summaries are sorted by descending expense, then name.

Failure modes:
    - None. Unknown category ids fall back to the major category and then to
      the uncategorized group; an unconstructible custom period selects no
      transactions.

Usage:
    aggregator = TransactionAggregator()
    summary = aggregator.aggregate_monthly(
        transactions=transactions,
        categories=categories,
        year=2025,
        month=4,
    )
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from budget_engines.period import MonthPeriodCalculator
from budget_engines.tracer import traced_engine
from budget_kernel.domain.models import (
    DEFAULT_FILTER,
    AggregationFilter,
    Category,
    CategoryTree,
    Transaction,
    as_category_tree,
)
from budget_kernel.domain.values import ZERO, safe_add, safe_subtract
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.aggregation")

UNCATEGORIZED_NAME = "未分類"


@dataclass(frozen=True)
class CategorySummary:
    category_id: UUID | None
    category_name: str
    total_income: Decimal = ZERO
    total_expense: Decimal = ZERO
    transaction_count: int = 0

    @property
    def net_amount(self) -> Decimal:
        return safe_subtract(self.total_income, self.total_expense)


@dataclass(frozen=True)
class MonthlySummary:
    year: int
    month: int
    total_income: Decimal
    total_expense: Decimal
    transaction_count: int
    category_summaries: tuple[CategorySummary, ...]

    @property
    def net_amount(self) -> Decimal:
        return safe_subtract(self.total_income, self.total_expense)

    def expense_by_category_id(self) -> dict[UUID, Decimal]:
        return {
            s.category_id: s.total_expense
            for s in self.category_summaries
            if s.category_id is not None
        }


@dataclass(frozen=True)
class AnnualSummary:
    year: int
    total_income: Decimal
    total_expense: Decimal
    transaction_count: int
    category_summaries: tuple[CategorySummary, ...]
    monthly_summaries: tuple[MonthlySummary, ...]

    @property
    def net_amount(self) -> Decimal:
        return safe_subtract(self.total_income, self.total_expense)

    def expense_by_category_id(self) -> dict[UUID, Decimal]:
        return {
            s.category_id: s.total_expense
            for s in self.category_summaries
            if s.category_id is not None
        }


@dataclass
class _Totals:
    income: Decimal = ZERO
    expense: Decimal = ZERO
    count: int = 0

    def add(self, transaction: Transaction) -> None:
        if transaction.is_income:
            self.income = safe_add(self.income, transaction.amount)
        elif transaction.is_expense:
            self.expense = safe_add(self.expense, transaction.absolute_amount)
        self.count += 1


def category_group_key(
    transaction: Transaction, tree: CategoryTree
) -> tuple[str, UUID | None]:
    """(display name, id) of the group a transaction is summed into."""
    for category_id in (transaction.minor_category_id, transaction.major_category_id):
        if category_id is not None and category_id in tree:
            return tree.full_name(category_id) or UNCATEGORIZED_NAME, category_id
    return UNCATEGORIZED_NAME, None


class TransactionAggregator:
    """
    Filters and sums transactions.

    Contract:
        Month membership is the calendar (year, month) of the transaction
        date unless a ``MonthPeriodCalculator`` is supplied, in which case the
        custom ``[start, end)`` period decides.
    """

    def __init__(self, period_calculator: MonthPeriodCalculator | None = None):
        self.period_calculator = period_calculator

    # -- selection ---------------------------------------------------------

    def transactions_in_month(
        self,
        transactions: Iterable[Transaction],
        year: int,
        month: int,
        filter: AggregationFilter = DEFAULT_FILTER,
    ) -> list[Transaction]:
        if self.period_calculator is None:
            return [
                t
                for t in transactions
                if t.date.year == year and t.date.month == month and filter.matches(t)
            ]
        period = self.period_calculator.calculate_period(year, month)
        if period is None:
            return []
        return [t for t in transactions if period.contains(t.date) and filter.matches(t)]

    def transactions_in_year(
        self,
        transactions: Iterable[Transaction],
        year: int,
        filter: AggregationFilter = DEFAULT_FILTER,
    ) -> list[Transaction]:
        if self.period_calculator is None:
            return [t for t in transactions if t.date.year == year and filter.matches(t)]
        first = self.period_calculator.calculate_period(year, 1)
        last = self.period_calculator.calculate_period(year, 12)
        if first is None or last is None:
            return []
        start: date = first.start
        end: date = last.end
        return [t for t in transactions if start <= t.date < end and filter.matches(t)]

    # -- summaries ---------------------------------------------------------

    def aggregate_by_category(
        self,
        transactions: Iterable[Transaction],
        categories: CategoryTree | Iterable[Category],
    ) -> tuple[CategorySummary, ...]:
        tree = as_category_tree(categories)
        groups: dict[tuple[str, UUID | None], _Totals] = {}
        for transaction in transactions:
            key = category_group_key(transaction, tree)
            groups.setdefault(key, _Totals()).add(transaction)

        summaries = [
            CategorySummary(
                category_id=category_id,
                category_name=name,
                total_income=totals.income,
                total_expense=totals.expense,
                transaction_count=totals.count,
            )
            for (name, category_id), totals in groups.items()
        ]
        summaries.sort(
            key=lambda s: (-s.total_expense, s.category_name, str(s.category_id))
        )
        return tuple(summaries)

    @traced_engine("aggregation", "1.0", fingerprint_fields=("year", "month", "filter"))
    def aggregate_monthly(
        self,
        *,
        transactions: Sequence[Transaction],
        categories: CategoryTree | Iterable[Category],
        year: int,
        month: int,
        filter: AggregationFilter = DEFAULT_FILTER,
    ) -> MonthlySummary:
        selected = self.transactions_in_month(transactions, year, month, filter)
        return self._monthly_summary(selected, as_category_tree(categories), year, month)

    @traced_engine("aggregation", "1.0", fingerprint_fields=("year", "filter"))
    def aggregate_annually(
        self,
        *,
        transactions: Sequence[Transaction],
        categories: CategoryTree | Iterable[Category],
        year: int,
        filter: AggregationFilter = DEFAULT_FILTER,
    ) -> AnnualSummary:
        t0 = time.monotonic()
        tree = as_category_tree(categories)
        selected = self.transactions_in_year(transactions, year, filter)

        totals = _Totals()
        for transaction in selected:
            totals.add(transaction)

        # Filter already applied; DEFAULT would drop non-target rows a caller kept.
        passthrough = AggregationFilter(
            include_only_calculation_target=False, exclude_transfers=False
        )
        monthly = tuple(
            self._monthly_summary(
                self.transactions_in_month(selected, year, month, passthrough),
                tree,
                year,
                month,
            )
            for month in range(1, 13)
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("annual_aggregation_completed", extra={
            "year": year,
            "transaction_count": totals.count,
            "duration_ms": duration_ms,
        })

        return AnnualSummary(
            year=year,
            total_income=totals.income,
            total_expense=totals.expense,
            transaction_count=totals.count,
            category_summaries=self.aggregate_by_category(selected, tree),
            monthly_summaries=monthly,
        )

    def _monthly_summary(
        self,
        selected: list[Transaction],
        tree: CategoryTree,
        year: int,
        month: int,
    ) -> MonthlySummary:
        totals = _Totals()
        for transaction in selected:
            totals.add(transaction)
        return MonthlySummary(
            year=year,
            month=month,
            total_income=totals.income,
            total_expense=totals.expense,
            transaction_count=totals.count,
            category_summaries=self.aggregate_by_category(selected, tree),
        )
