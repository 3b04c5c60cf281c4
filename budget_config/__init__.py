"""
Budget settings: YAML loading and bridges to runtime engines.

    from budget_config import load_settings, make_aggregator

    settings = load_settings("budget.yaml")
    aggregator = make_aggregator(settings)
"""

from budget_config.bridges import (
    annual_config_for_year,
    make_aggregator,
    make_business_day_provider,
    make_period_calculator,
)
from budget_config.loader import load_settings, parse_settings
from budget_config.schema import BudgetSettings, PeriodSettings

__all__ = [
    "BudgetSettings",
    "PeriodSettings",
    "annual_config_for_year",
    "load_settings",
    "make_aggregator",
    "make_business_day_provider",
    "make_period_calculator",
    "parse_settings",
]
