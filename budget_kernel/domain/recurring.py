"""
Recurring -- Irregular recurring payments and their saving ledgers.

Responsibility:
    Definitions of multi-month payments (car tax, insurance renewals), their
    scheduled occurrences, and the lifetime saved-vs-paid ledger kept per
    definition.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O. Balances are frozen;
    the balance service returns updated copies.

Invariants enforced:
    - ``monthly_saving_amount`` is never negative and is 0 when saving is
      disabled or the recurrence interval is not positive.
    - ``balance == total_saved_amount - total_paid_amount``; a negative
      balance is a legal, observable state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from budget_kernel.domain.models import EPOCH
from budget_kernel.domain.values import ZERO, safe_divide, safe_subtract


class SavingStrategy(str, Enum):
    DISABLED = "disabled"
    EVENLY_DISTRIBUTED = "evenly_distributed"
    CUSTOM_MONTHLY = "custom_monthly"


class OccurrenceStatus(str, Enum):
    PLANNED = "planned"
    SAVING = "saving"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RecurringPaymentOccurrence:
    """One scheduled instance of a recurring payment."""

    id: UUID
    definition_id: UUID
    scheduled_date: date
    expected_amount: Decimal
    status: OccurrenceStatus = OccurrenceStatus.PLANNED
    actual_date: date | None = None
    actual_amount: Decimal | None = None
    updated_at: datetime = EPOCH

    @property
    def is_completed(self) -> bool:
        return self.status is OccurrenceStatus.COMPLETED

    @property
    def remaining_amount(self) -> Decimal:
        paid = self.actual_amount or ZERO
        return max(ZERO, safe_subtract(self.expected_amount, paid))


@dataclass(frozen=True)
class RecurringPaymentDefinition:
    """
    A payment that recurs every ``recurrence_interval_months`` months.

    Contract:
        ``amount`` is the expected total per cycle. The saving strategy
        decides how much is set aside each month toward it.
    """

    id: UUID
    name: str
    amount: Decimal
    recurrence_interval_months: int
    first_occurrence_date: date
    lead_time_months: int = 0
    category_id: UUID | None = None
    saving_strategy: SavingStrategy = SavingStrategy.EVENLY_DISTRIBUTED
    custom_monthly_saving_amount: Decimal | None = None
    occurrences: tuple[RecurringPaymentOccurrence, ...] = ()
    created_at: datetime = EPOCH
    updated_at: datetime = EPOCH

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"Recurring payment amount cannot be negative: {self.amount}")
        if self.lead_time_months < 0:
            raise ValueError(f"Lead time cannot be negative: {self.lead_time_months}")
        if not isinstance(self.occurrences, tuple):
            object.__setattr__(self, "occurrences", tuple(self.occurrences))

    @property
    def is_saving_enabled(self) -> bool:
        return self.saving_strategy is not SavingStrategy.DISABLED

    @property
    def monthly_saving_amount(self) -> Decimal:
        match self.saving_strategy:
            case SavingStrategy.DISABLED:
                return ZERO
            case SavingStrategy.EVENLY_DISTRIBUTED:
                if self.recurrence_interval_months <= 0:
                    return ZERO
                return safe_divide(self.amount, self.recurrence_interval_months)
            case SavingStrategy.CUSTOM_MONTHLY:
                return self.custom_monthly_saving_amount or ZERO


@dataclass(frozen=True)
class RecurringPaymentSavingBalance:
    """
    Lifetime saved-vs-paid ledger for one definition.

    ``last_updated_year``/``last_updated_month`` record the most recent
    monthly saving posting and guard against posting the same month twice.
    """

    id: UUID
    definition_id: UUID
    total_saved_amount: Decimal = ZERO
    total_paid_amount: Decimal = ZERO
    last_updated_year: int = 0
    last_updated_month: int = 0
    created_at: datetime = EPOCH
    updated_at: datetime = EPOCH

    @property
    def balance(self) -> Decimal:
        return safe_subtract(self.total_saved_amount, self.total_paid_amount)

    @property
    def is_balance_insufficient(self) -> bool:
        return self.balance < 0

    @property
    def last_updated_label(self) -> str:
        return f"{self.last_updated_year:04d}-{self.last_updated_month:02d}"

    def is_posted_for(self, year: int, month: int) -> bool:
        return (self.last_updated_year, self.last_updated_month) == (year, month)
