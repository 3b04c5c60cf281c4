"""
Module: budget_engines.cache
Responsibility:
    Memoize the budget calculator's four expensive entry points, keyed by
    period plus content-derived version hashes of the input collections.

Architecture position:
    Engines -- the only shared mutable object in the calculation layer.
    Constructed explicitly and injected into ``BudgetCalculator``; there is
    no module-level instance.

Invariants enforced:
    - One ``threading.Lock`` serializes every read, write, invalidation and
      metrics snapshot across all four maps, so no reader observes a map
      half-way through an invalidation.
    - Monthly budget keys carry the aggregator's month-period signature, so
      calculators with different period settings can share one cache.
    - Any insert, delete or ``updated_at`` change in an input collection
      changes its version hash. Items are hashed in ``str(id)`` order so the
      hash does not depend on input order.
    - Recurring-payment definition versions also fold in the occurrence count
      and the newest occurrence ``updated_at``; editing an occurrence does
      not touch its definition.
    - The cache never changes a result: mutable values (dicts) are copied on
      store and on hit.

Failure modes:
    - None. A miss returns None and the caller computes fresh.
"""

from __future__ import annotations

import hashlib
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Flag
from typing import Any
from uuid import UUID

from budget_engines.period import MonthPeriodCalculator
from budget_kernel.domain.calendar import WeekendCalendar
from budget_kernel.domain.models import AggregationFilter, Category
from budget_kernel.domain.recurring import RecurringPaymentDefinition
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.cache")


class CacheTarget(Flag):
    """Selection of cache maps for ``invalidate``."""

    MONTHLY_BUDGET = 1
    RECURRING_PAYMENT_SAVINGS = 2
    MONTHLY_SAVINGS = 4
    CATEGORY_SAVINGS = 8
    ALL = 15


_KINDS = (
    CacheTarget.MONTHLY_BUDGET,
    CacheTarget.RECURRING_PAYMENT_SAVINGS,
    CacheTarget.MONTHLY_SAVINGS,
    CacheTarget.CATEGORY_SAVINGS,
)


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MonthlyBudgetCacheKey:
    year: int
    month: int
    filter: AggregationFilter
    period_signature: str | None
    excluded_categories_signature: str
    transactions_version: str
    budgets_version: str
    categories_version: str


@dataclass(frozen=True)
class RecurringSavingsCacheKey:
    year: int
    month: int
    reference_date: date
    definitions_version: str
    balances_version: str


@dataclass(frozen=True)
class SavingsAllocationCacheKey:
    year: int
    month: int
    definitions_version: str


# ---------------------------------------------------------------------------
# Version hashing
# ---------------------------------------------------------------------------


def _digest(parts: Iterable[str]) -> str:
    h = hashlib.sha256()
    for part in parts:
        h.update(part.encode("utf-8"))
        h.update(b"\x1f")
    return h.hexdigest()[:16]


def _stamp(value: datetime | None) -> str:
    return value.isoformat() if value is not None else "null"


class CacheVersionHasher:
    """Content-derived version hashes for cache keys."""

    @staticmethod
    def version(items: Iterable[Any]) -> str:
        """Hash of count plus (id, updated_at) of every item, in id order."""
        ordered = sorted(items, key=lambda item: str(item.id))
        parts = [str(len(ordered))]
        for item in ordered:
            parts.append(f"{item.id}@{_stamp(item.updated_at)}")
        return _digest(parts)

    @staticmethod
    def categories_version(categories: Iterable[Category]) -> str:
        ordered = sorted(categories, key=lambda c: str(c.id))
        parts = [str(len(ordered))]
        for c in ordered:
            parts.append(f"{c.id}@{_stamp(c.updated_at)}>{c.parent_id}")
        return _digest(parts)

    @staticmethod
    def definitions_version(definitions: Iterable[RecurringPaymentDefinition]) -> str:
        ordered = sorted(definitions, key=lambda d: str(d.id))
        parts = [str(len(ordered))]
        for d in ordered:
            latest = max((o.updated_at for o in d.occurrences), default=None)
            parts.append(
                f"{d.id}@{_stamp(d.updated_at)}#{len(d.occurrences)}@{_stamp(latest)}"
            )
        return _digest(parts)

    @staticmethod
    def period_signature(period_calculator: MonthPeriodCalculator | None) -> str | None:
        """Identity of a custom month period; None means calendar months."""
        if period_calculator is None:
            return None
        provider = period_calculator.business_days
        if isinstance(provider, WeekendCalendar):
            calendar = "weekends+" + ",".join(sorted(d.isoformat() for d in provider.holidays))
        else:
            calendar = f"{type(provider).__qualname__}@{id(provider):x}"
        return _digest([
            str(period_calculator.month_start_day),
            period_calculator.adjustment.value,
            calendar,
        ])

    @staticmethod
    def id_set_signature(ids: Iterable[UUID]) -> str:
        return _digest(sorted(str(i) for i in set(ids)))


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BudgetCalculationCacheMetrics:
    monthly_budget_hits: int = 0
    monthly_budget_misses: int = 0
    recurring_payment_savings_hits: int = 0
    recurring_payment_savings_misses: int = 0
    monthly_savings_hits: int = 0
    monthly_savings_misses: int = 0
    category_savings_hits: int = 0
    category_savings_misses: int = 0

    @property
    def total_hits(self) -> int:
        return (
            self.monthly_budget_hits
            + self.recurring_payment_savings_hits
            + self.monthly_savings_hits
            + self.category_savings_hits
        )

    @property
    def total_misses(self) -> int:
        return (
            self.monthly_budget_misses
            + self.recurring_payment_savings_misses
            + self.monthly_savings_misses
            + self.category_savings_misses
        )


class BudgetCalculationCache:
    """
    Thread-safe memo of budget calculation results.

    Contract:
        Pure optimization; removing it from ``BudgetCalculator`` changes
        latency only.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._maps: dict[CacheTarget, dict[Any, Any]] = {kind: {} for kind in _KINDS}
        self._hits: dict[CacheTarget, int] = {kind: 0 for kind in _KINDS}
        self._misses: dict[CacheTarget, int] = {kind: 0 for kind in _KINDS}

    def _lookup(self, kind: CacheTarget, key: Any) -> Any:
        with self._lock:
            value = self._maps[kind].get(key)
            if value is None:
                self._misses[kind] += 1
            else:
                self._hits[kind] += 1
            return value

    def _store(self, kind: CacheTarget, key: Any, value: Any) -> None:
        with self._lock:
            self._maps[kind][key] = value

    # -- monthly budget ----------------------------------------------------

    def cached_monthly_budget(self, key: MonthlyBudgetCacheKey) -> Any:
        return self._lookup(CacheTarget.MONTHLY_BUDGET, key)

    def store_monthly_budget(self, key: MonthlyBudgetCacheKey, value: Any) -> None:
        self._store(CacheTarget.MONTHLY_BUDGET, key, value)

    # -- recurring payment savings ----------------------------------------

    def cached_recurring_payment_savings(self, key: RecurringSavingsCacheKey) -> Any:
        return self._lookup(CacheTarget.RECURRING_PAYMENT_SAVINGS, key)

    def store_recurring_payment_savings(self, key: RecurringSavingsCacheKey, value: Any) -> None:
        self._store(CacheTarget.RECURRING_PAYMENT_SAVINGS, key, value)

    # -- savings allocation ------------------------------------------------

    def cached_monthly_savings(self, key: SavingsAllocationCacheKey) -> Decimal | None:
        return self._lookup(CacheTarget.MONTHLY_SAVINGS, key)

    def store_monthly_savings(self, key: SavingsAllocationCacheKey, value: Decimal) -> None:
        self._store(CacheTarget.MONTHLY_SAVINGS, key, value)

    def cached_category_savings(
        self, key: SavingsAllocationCacheKey
    ) -> dict[UUID, Decimal] | None:
        value = self._lookup(CacheTarget.CATEGORY_SAVINGS, key)
        return dict(value) if value is not None else None

    def store_category_savings(
        self, key: SavingsAllocationCacheKey, value: dict[UUID, Decimal]
    ) -> None:
        self._store(CacheTarget.CATEGORY_SAVINGS, key, dict(value))

    # -- maintenance -------------------------------------------------------

    def invalidate(self, targets: CacheTarget = CacheTarget.ALL) -> None:
        with self._lock:
            cleared = []
            for kind in _KINDS:
                if kind in targets:
                    self._maps[kind].clear()
                    cleared.append(kind.name)
        logger.debug("budget_cache_invalidated", extra={"targets": cleared})

    def entry_count(self, kind: CacheTarget) -> int:
        with self._lock:
            return len(self._maps[kind])

    def metrics_snapshot(self) -> BudgetCalculationCacheMetrics:
        with self._lock:
            return BudgetCalculationCacheMetrics(
                monthly_budget_hits=self._hits[CacheTarget.MONTHLY_BUDGET],
                monthly_budget_misses=self._misses[CacheTarget.MONTHLY_BUDGET],
                recurring_payment_savings_hits=self._hits[CacheTarget.RECURRING_PAYMENT_SAVINGS],
                recurring_payment_savings_misses=self._misses[CacheTarget.RECURRING_PAYMENT_SAVINGS],
                monthly_savings_hits=self._hits[CacheTarget.MONTHLY_SAVINGS],
                monthly_savings_misses=self._misses[CacheTarget.MONTHLY_SAVINGS],
                category_savings_hits=self._hits[CacheTarget.CATEGORY_SAVINGS],
                category_savings_misses=self._misses[CacheTarget.CATEGORY_SAVINGS],
            )
