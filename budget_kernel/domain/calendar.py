"""
Calendar -- Business-day provider used for period boundaries.

Responsibility:
    Answer "is this date a business day" and "what is the nearest business
    day before/after it". Holiday calendars are computed elsewhere; callers
    hand the resulting dates to ``WeekendCalendar``.

Architecture position:
    Kernel > Domain -- pure, zero I/O. Consumed only by the period calculator.

Failure modes:
    - ``previous_business_day`` / ``next_business_day`` return None when no
      business day is found within ``max_search_days`` (e.g. a holiday set
      covering a whole fortnight).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import date, timedelta

SATURDAY = 5
SUNDAY = 6

DEFAULT_MAX_SEARCH_DAYS = 10


class BusinessDayProvider(ABC):
    """Abstract business-day oracle."""

    max_search_days: int = DEFAULT_MAX_SEARCH_DAYS

    @abstractmethod
    def is_business_day(self, day: date) -> bool:
        ...

    def previous_business_day(self, day: date) -> date | None:
        """Nearest business day strictly before ``day``."""
        return self._search(day, -1)

    def next_business_day(self, day: date) -> date | None:
        """Nearest business day strictly after ``day``."""
        return self._search(day, 1)

    def _search(self, day: date, step: int) -> date | None:
        candidate = day
        for _ in range(self.max_search_days):
            try:
                candidate = candidate + timedelta(days=step)
            except OverflowError:
                return None
            if self.is_business_day(candidate):
                return candidate
        return None


class WeekendCalendar(BusinessDayProvider):
    """
    Saturdays, Sundays and the supplied holidays are non-business days.

    Guarantees:
        The holiday set is frozen at construction.
    """

    def __init__(self, holidays: Iterable[date] = ()):
        self._holidays: frozenset[date] = frozenset(holidays)

    @property
    def holidays(self) -> frozenset[date]:
        return self._holidays

    def is_holiday(self, day: date) -> bool:
        return day in self._holidays

    def is_business_day(self, day: date) -> bool:
        if day.weekday() in (SATURDAY, SUNDAY):
            return False
        return day not in self._holidays
