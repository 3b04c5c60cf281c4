"""
Module: budget_engines.period
Responsibility:
    Resolve a (year, month) into the concrete [start, end) date range of a
    household "month", honouring a configurable start day (e.g. payday on
    the 25th) and a business-day adjustment for the start date.

Architecture position:
    Engines -- pure calculation layer, zero I/O. The holiday calendar is an
    injected ``BusinessDayProvider``.

Invariants enforced:
    - Start day is clamped to 1..28 so every month can host it.
    - Only the start is moved by the business-day adjustment; the end is
      always the nominal start day of the following month.

Failure modes:
    - ``calculate_period`` returns None when a date cannot be constructed
      (month outside 1..12, year outside the supported date range).

Usage:
    calculator = MonthPeriodCalculator(
        month_start_day=25,
        adjustment=BusinessDayAdjustment.MOVE_TO_PREVIOUS_BUSINESS_DAY,
        business_days=WeekendCalendar(holidays),
    )
    period = calculator.calculate_period(2025, 1)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from budget_kernel.domain.calendar import BusinessDayProvider, WeekendCalendar
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.period")

MIN_START_DAY = 1
MAX_START_DAY = 28


class BusinessDayAdjustment(str, Enum):
    NONE = "none"
    MOVE_TO_PREVIOUS_BUSINESS_DAY = "move_to_previous_business_day"
    MOVE_TO_NEXT_BUSINESS_DAY = "move_to_next_business_day"


@dataclass(frozen=True)
class MonthPeriod:
    """Half-open date range ``[start, end)``."""

    year: int
    month: int
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end

    @property
    def day_count(self) -> int:
        return (self.end - self.start).days


def _next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


class MonthPeriodCalculator:
    """
    Period boundaries for a configured month start day.

    Contract:
        Stateless after construction; safe to share across threads.
    """

    def __init__(
        self,
        month_start_day: int = 1,
        adjustment: BusinessDayAdjustment = BusinessDayAdjustment.NONE,
        business_days: BusinessDayProvider | None = None,
    ):
        self.month_start_day = min(max(month_start_day, MIN_START_DAY), MAX_START_DAY)
        self.adjustment = adjustment
        self.business_days = business_days or WeekendCalendar()

    def calculate_period(self, year: int, month: int) -> MonthPeriod | None:
        try:
            start = date(year, month, self.month_start_day)
            next_year, next_month = _next_month(year, month)
            end = date(next_year, next_month, self.month_start_day)
        except ValueError:
            logger.debug("period_unconstructible", extra={"year": year, "month": month})
            return None

        return MonthPeriod(
            year=year, month=month, start=self._adjust(start), end=end
        )

    def _adjust(self, day: date) -> date:
        match self.adjustment:
            case BusinessDayAdjustment.NONE:
                return day
            case BusinessDayAdjustment.MOVE_TO_PREVIOUS_BUSINESS_DAY:
                if self.business_days.is_business_day(day):
                    return day
                return self.business_days.previous_business_day(day) or day
            case BusinessDayAdjustment.MOVE_TO_NEXT_BUSINESS_DAY:
                if self.business_days.is_business_day(day):
                    return day
                return self.business_days.next_business_day(day) or day
