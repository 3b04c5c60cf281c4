"""
Tests for the business-day calendar and the deterministic clock.
"""

from datetime import date, datetime, timezone

from budget_kernel.domain.calendar import WeekendCalendar
from budget_kernel.domain.clock import DeterministicClock


class TestWeekendCalendar:
    """Weekends and supplied holidays are non-business days."""

    def setup_method(self):
        # 2025-05-03..06 is Golden Week (Sat, Sun, Mon holiday, Tue holiday)
        self.calendar = WeekendCalendar(holidays=[date(2025, 5, 5), date(2025, 5, 6)])

    def test_weekday_is_business_day(self):
        assert self.calendar.is_business_day(date(2025, 5, 7))

    def test_weekend_is_not_business_day(self):
        assert not self.calendar.is_business_day(date(2025, 5, 3))
        assert not self.calendar.is_business_day(date(2025, 5, 4))

    def test_holiday_is_not_business_day(self):
        assert self.calendar.is_holiday(date(2025, 5, 5))
        assert not self.calendar.is_business_day(date(2025, 5, 5))

    def test_next_business_day_skips_weekend_and_holidays(self):
        assert self.calendar.next_business_day(date(2025, 5, 3)) == date(2025, 5, 7)

    def test_previous_business_day(self):
        assert self.calendar.previous_business_day(date(2025, 5, 6)) == date(2025, 5, 2)

    def test_search_gives_up(self):
        blocked = WeekendCalendar(
            holidays=[date(2025, 6, d) for d in range(1, 31)]
        )
        assert blocked.next_business_day(date(2025, 6, 1)) is None

    def test_holidays_are_frozen(self):
        assert self.calendar.holidays == frozenset({date(2025, 5, 5), date(2025, 5, 6)})


class TestDeterministicClock:
    def test_fixed_until_advanced(self):
        clock = DeterministicClock(datetime(2025, 3, 31, 23, 59, 59, tzinfo=timezone.utc))
        assert clock.now() == clock.now()
        assert clock.today() == date(2025, 3, 31)
        clock.advance(1)
        assert clock.today() == date(2025, 4, 1)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(3600)
        target = datetime(2025, 12, 1, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target
