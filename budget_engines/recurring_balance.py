"""
Module: budget_engines.recurring_balance
Responsibility:
    Maintain the lifetime saved-vs-paid ledger of each recurring irregular
    payment: post monthly savings, record payments and classify them against
    the expected amount, and rebuild a ledger from history.

Architecture position:
    Engines -- pure calculation layer. Balances are frozen records; every
    operation returns a new balance. The only state is the optional
    ``BalanceSnapshotCache`` used by ``recalculate_balance``.

Invariants enforced:
    - Posting the same (year, month) twice leaves the balance unchanged.
    - totals are additive across cycles; nothing resets between payments.
    - A negative balance is kept as-is (``is_balance_insufficient``).

Failure modes:
    - None. An occurrence without an actual amount leaves the balance
      untouched and is reported against an actual of 0.

Usage:
    service = RecurringPaymentBalanceService(clock=clock)
    balance = service.record_monthly_savings(definition, None, 2025, 1)
    result = service.process_payment(occurrence, balance)
    result.difference.type  # DifferenceType.EXACT
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from budget_engines.cache import CacheVersionHasher
from budget_engines.tracer import traced_engine
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.domain.models import month_index
from budget_kernel.domain.recurring import (
    RecurringPaymentDefinition,
    RecurringPaymentOccurrence,
    RecurringPaymentSavingBalance,
)
from budget_kernel.domain.values import (
    ZERO,
    safe_add,
    safe_multiply,
    safe_subtract,
    safe_sum,
)
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.recurring_balance")

# Differences below one yen are rounding residue from evenly split savings.
PAYMENT_TOLERANCE = Decimal("1")


class DifferenceType(str, Enum):
    EXACT = "exact"
    UNDERPAID = "underpaid"
    OVERPAID = "overpaid"


@dataclass(frozen=True)
class PaymentDifference:
    expected: Decimal
    actual: Decimal
    difference: Decimal
    type: DifferenceType

    @classmethod
    def of(cls, expected: Decimal, actual: Decimal) -> PaymentDifference:
        difference = safe_subtract(actual, expected)
        if abs(difference) <= PAYMENT_TOLERANCE:
            kind = DifferenceType.EXACT
        elif difference > 0:
            kind = DifferenceType.OVERPAID
        else:
            kind = DifferenceType.UNDERPAID
        return cls(expected=expected, actual=actual, difference=difference, type=kind)


@dataclass(frozen=True)
class PaymentResult:
    balance: RecurringPaymentSavingBalance
    difference: PaymentDifference


def months_elapsed(from_year: int, from_month: int, to_year: int, to_month: int) -> int:
    """Inclusive month count; 0 when the range is reversed."""
    return max(0, month_index(to_year, to_month) - month_index(from_year, from_month) + 1)


# ---------------------------------------------------------------------------
# Snapshot cache
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BalanceCacheKey:
    definition_id: UUID
    balance_id: UUID
    year: int
    month: int
    start_year: int | None
    start_month: int | None
    definition_version: str


@dataclass(frozen=True)
class BalanceSnapshot:
    total_saved_amount: Decimal
    total_paid_amount: Decimal
    last_updated_year: int
    last_updated_month: int


@dataclass(frozen=True)
class BalanceCacheMetrics:
    hits: int = 0
    misses: int = 0
    invalidations: int = 0


class BalanceSnapshotCache:
    """Lock-guarded memo of recalculated balances."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshots: dict[BalanceCacheKey, BalanceSnapshot] = {}
        self._hits = 0
        self._misses = 0
        self._invalidations = 0

    def snapshot(self, key: BalanceCacheKey) -> BalanceSnapshot | None:
        with self._lock:
            value = self._snapshots.get(key)
            if value is None:
                self._misses += 1
            else:
                self._hits += 1
            return value

    def store(self, key: BalanceCacheKey, snapshot: BalanceSnapshot) -> None:
        with self._lock:
            self._snapshots[key] = snapshot

    def invalidate(self, balance_id: UUID | None = None) -> None:
        """Drop one balance's snapshots, or all of them."""
        with self._lock:
            if balance_id is None:
                self._snapshots.clear()
            else:
                self._snapshots = {
                    k: v for k, v in self._snapshots.items() if k.balance_id != balance_id
                }
            self._invalidations += 1

    def metrics_snapshot(self) -> BalanceCacheMetrics:
        with self._lock:
            return BalanceCacheMetrics(
                hits=self._hits,
                misses=self._misses,
                invalidations=self._invalidations,
            )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class RecurringPaymentBalanceService:
    def __init__(
        self,
        cache: BalanceSnapshotCache | None = None,
        clock: Clock | None = None,
    ):
        self.cache = cache or BalanceSnapshotCache()
        self.clock = clock or SystemClock()

    def cache_metrics(self) -> BalanceCacheMetrics:
        return self.cache.metrics_snapshot()

    def invalidate_cache(self, balance_id: UUID | None = None) -> None:
        self.cache.invalidate(balance_id)

    @traced_engine("recurring_balance", "1.0", fingerprint_fields=("year", "month"))
    def record_monthly_savings(
        self,
        definition: RecurringPaymentDefinition,
        balance: RecurringPaymentSavingBalance | None,
        year: int,
        month: int,
    ) -> RecurringPaymentSavingBalance:
        """Post one month of savings.

        Returns the balance unchanged when (year, month) was already posted.
        """
        monthly_saving = definition.monthly_saving_amount
        now = self.clock.now()

        if balance is None:
            created = RecurringPaymentSavingBalance(
                id=uuid4(),
                definition_id=definition.id,
                total_saved_amount=monthly_saving,
                total_paid_amount=ZERO,
                last_updated_year=year,
                last_updated_month=month,
                created_at=now,
                updated_at=now,
            )
            logger.info("recurring_balance_created", extra={
                "definition_id": str(definition.id),
                "balance_id": str(created.id),
                "period": created.last_updated_label,
                "monthly_saving": str(monthly_saving),
            })
            return created

        if balance.is_posted_for(year, month):
            logger.debug("recurring_savings_already_posted", extra={
                "balance_id": str(balance.id),
                "period": balance.last_updated_label,
            })
            return balance

        updated = replace(
            balance,
            total_saved_amount=safe_add(balance.total_saved_amount, monthly_saving),
            last_updated_year=year,
            last_updated_month=month,
            updated_at=now,
        )
        self.cache.invalidate(balance.id)
        logger.info("recurring_savings_posted", extra={
            "balance_id": str(balance.id),
            "period": updated.last_updated_label,
            "total_saved": str(updated.total_saved_amount),
        })
        return updated

    @traced_engine("recurring_balance", "1.0")
    def process_payment(
        self,
        occurrence: RecurringPaymentOccurrence,
        balance: RecurringPaymentSavingBalance,
    ) -> PaymentResult:
        """Add the occurrence's actual amount to the paid total and classify it."""
        if occurrence.actual_amount is None:
            return PaymentResult(
                balance=balance,
                difference=PaymentDifference.of(occurrence.expected_amount, ZERO),
            )

        difference = PaymentDifference.of(occurrence.expected_amount, occurrence.actual_amount)
        updated = replace(
            balance,
            total_paid_amount=safe_add(balance.total_paid_amount, occurrence.actual_amount),
            updated_at=self.clock.now(),
        )
        self.cache.invalidate(balance.id)

        log = logger.warning if updated.is_balance_insufficient else logger.info
        log("recurring_payment_processed", extra={
            "balance_id": str(balance.id),
            "occurrence_id": str(occurrence.id),
            "difference_type": difference.type.value,
            "difference": str(difference.difference),
            "balance": str(updated.balance),
        })
        return PaymentResult(balance=updated, difference=difference)

    @traced_engine("recurring_balance", "1.0", fingerprint_fields=("year", "month"))
    def recalculate_balance(
        self,
        definition: RecurringPaymentDefinition,
        balance: RecurringPaymentSavingBalance,
        year: int,
        month: int,
        start_year: int | None = None,
        start_month: int | None = None,
    ) -> RecurringPaymentSavingBalance:
        """Rebuild totals from history up to (year, month).

        Saved = monthly saving times the months elapsed (inclusive) since the
        start month, which defaults to the definition's creation month.
        Paid = actual amounts of completed occurrences.
        """
        key = BalanceCacheKey(
            definition_id=definition.id,
            balance_id=balance.id,
            year=year,
            month=month,
            start_year=start_year,
            start_month=start_month,
            definition_version=CacheVersionHasher.definitions_version([definition]),
        )
        snapshot = self.cache.snapshot(key)
        if snapshot is None:
            snapshot = self._compute_snapshot(
                definition, year, month, start_year, start_month
            )
            self.cache.store(key, snapshot)

        return replace(
            balance,
            total_saved_amount=snapshot.total_saved_amount,
            total_paid_amount=snapshot.total_paid_amount,
            last_updated_year=snapshot.last_updated_year,
            last_updated_month=snapshot.last_updated_month,
            updated_at=self.clock.now(),
        )

    def _compute_snapshot(
        self,
        definition: RecurringPaymentDefinition,
        year: int,
        month: int,
        start_year: int | None,
        start_month: int | None,
    ) -> BalanceSnapshot:
        total_paid = safe_sum(
            o.actual_amount or ZERO for o in definition.occurrences if o.is_completed
        )
        if start_year is None or start_month is None:
            created: datetime = definition.created_at
            start_year, start_month = created.year, created.month

        elapsed = months_elapsed(start_year, start_month, year, month)
        total_saved = safe_multiply(definition.monthly_saving_amount, elapsed)

        logger.info("recurring_balance_recalculated", extra={
            "definition_id": str(definition.id),
            "months_elapsed": elapsed,
            "total_saved": str(total_saved),
            "total_paid": str(total_paid),
        })
        return BalanceSnapshot(
            total_saved_amount=total_saved,
            total_paid_amount=total_paid,
            last_updated_year=year,
            last_updated_month=month,
        )
