"""
Budget settings schema.

Frozen dataclasses produced by ``budget_config.loader`` from a YAML settings
file. Runtime objects (period calculator, aggregator) are built from these by
``budget_config.bridges``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from budget_engines.period import BusinessDayAdjustment
from budget_kernel.domain.annual import AnnualBudgetConfig
from budget_kernel.domain.models import DEFAULT_FILTER, AggregationFilter


@dataclass(frozen=True)
class PeriodSettings:
    """How a household month is delimited."""

    month_start_day: int = 1
    business_day_adjustment: BusinessDayAdjustment = BusinessDayAdjustment.NONE


@dataclass(frozen=True)
class BudgetSettings:
    period: PeriodSettings = PeriodSettings()
    holidays: tuple[date, ...] = ()
    filter: AggregationFilter = DEFAULT_FILTER
    annual_budgets: tuple[AnnualBudgetConfig, ...] = ()
    checksum: str = ""
