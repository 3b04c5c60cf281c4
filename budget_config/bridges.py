"""
Config -> Engine Bridges.

Turn ``BudgetSettings`` into runtime collaborators. These live in
budget_config because engines must never import the config layer.

Usage:
    settings = load_settings("budget.yaml")
    aggregator = make_aggregator(settings)
    calculator = BudgetCalculator(aggregator=aggregator, cache=BudgetCalculationCache())
"""

from __future__ import annotations

from budget_config.schema import BudgetSettings
from budget_engines.aggregation import TransactionAggregator
from budget_engines.period import BusinessDayAdjustment, MonthPeriodCalculator
from budget_kernel.domain.annual import AnnualBudgetConfig
from budget_kernel.domain.calendar import WeekendCalendar


def make_business_day_provider(settings: BudgetSettings) -> WeekendCalendar:
    return WeekendCalendar(settings.holidays)


def make_period_calculator(settings: BudgetSettings) -> MonthPeriodCalculator:
    return MonthPeriodCalculator(
        month_start_day=settings.period.month_start_day,
        adjustment=settings.period.business_day_adjustment,
        business_days=make_business_day_provider(settings),
    )


def make_aggregator(settings: BudgetSettings) -> TransactionAggregator:
    """Calendar months when the month starts on the 1st, custom periods otherwise."""
    period = settings.period
    if period.month_start_day == 1 and period.business_day_adjustment is BusinessDayAdjustment.NONE:
        return TransactionAggregator()
    return TransactionAggregator(make_period_calculator(settings))


def annual_config_for_year(settings: BudgetSettings, year: int) -> AnnualBudgetConfig | None:
    return next((c for c in settings.annual_budgets if c.year == year), None)
