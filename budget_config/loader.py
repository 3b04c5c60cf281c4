"""
Settings Loader (``budget_config.loader``).

Responsibility
--------------
Load a YAML settings file and parse it into ``budget_config.schema``
dataclasses plus the kernel's ``AnnualBudgetConfig`` records.

Architecture position
---------------------
**Config layer**. Depends on the kernel domain and on the period engine's
adjustment enum; engines never import this module.

Invariants enforced
-------------------
* Every parse error raises ``InvalidConfigurationError`` naming the field.
* Money values are parsed to ``Decimal`` from strings or ints, never floats.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  settings for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid or missing values  -> ``InvalidConfigurationError``.

Example
-------
::

    period:
      month_start_day: 25
      business_day_adjustment: move_to_previous_business_day
    holidays: [2025-01-01]
    annual_budgets:
      - year: 2025
        total_amount: "300000"
        policy: automatic
        allocations:
          - category_id: 0d8f7a52-7c6e-4c43-9f59-1b1d8f0f5a10
            amount: "120000"
            policy_override: full_coverage
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar
from uuid import UUID

import yaml

from budget_config.schema import BudgetSettings, PeriodSettings
from budget_engines.period import MAX_START_DAY, MIN_START_DAY, BusinessDayAdjustment
from budget_kernel.domain.annual import (
    AnnualBudgetAllocation,
    AnnualBudgetConfig,
    AnnualBudgetPolicy,
)
from budget_kernel.domain.models import AggregationFilter
from budget_kernel.exceptions import InvalidConfigurationError
from budget_kernel.logging_config import get_logger

logger = get_logger("config.loader")

E = TypeVar("E", bound=Enum)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any, field: str = "date") -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError as exc:
            raise InvalidConfigurationError(field, value, "not an ISO date") from exc
    raise InvalidConfigurationError(field, value, "not a date")


def parse_decimal(value: Any, field: str) -> Decimal:
    """Money from a string or int. Floats are rejected to avoid binary rounding."""
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidConfigurationError(field, value, "quote money values as strings")
    if isinstance(value, (int, str)):
        try:
            amount = Decimal(str(value).replace(",", ""))
        except InvalidOperation as exc:
            raise InvalidConfigurationError(field, value, "not a decimal number") from exc
        if not amount.is_finite():
            raise InvalidConfigurationError(field, value, "must be a finite number")
        return amount
    raise InvalidConfigurationError(field, value, "not a decimal number")


def parse_year(value: Any, field: str) -> int:
    """Calendar year from an int or a digit string."""
    if isinstance(value, bool):
        raise InvalidConfigurationError(field, value, "not a year")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if not isinstance(value, int) or not 1 <= value <= 9999:
        raise InvalidConfigurationError(field, value, "not a year")
    return value


def parse_uuid(value: Any, field: str) -> UUID:
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise InvalidConfigurationError(field, value, "not a UUID") from exc


def parse_enum(enum_type: type[E], value: Any, field: str) -> E:
    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_type)
        raise InvalidConfigurationError(field, value, f"expected one of: {allowed}") from exc


def parse_period_settings(data: dict[str, Any]) -> PeriodSettings:
    start_day = data.get("month_start_day", 1)
    if isinstance(start_day, bool) or not isinstance(start_day, int):
        raise InvalidConfigurationError("period.month_start_day", start_day, "not an integer")
    if not MIN_START_DAY <= start_day <= MAX_START_DAY:
        raise InvalidConfigurationError(
            "period.month_start_day",
            start_day,
            f"must be within {MIN_START_DAY}..{MAX_START_DAY}",
        )
    adjustment = parse_enum(
        BusinessDayAdjustment,
        data.get("business_day_adjustment", BusinessDayAdjustment.NONE.value),
        "period.business_day_adjustment",
    )
    return PeriodSettings(month_start_day=start_day, business_day_adjustment=adjustment)


def parse_filter(data: dict[str, Any]) -> AggregationFilter:
    institution = data.get("financial_institution_id")
    category = data.get("category_id")
    return AggregationFilter(
        include_only_calculation_target=bool(data.get("include_only_calculation_target", True)),
        exclude_transfers=bool(data.get("exclude_transfers", True)),
        financial_institution_id=(
            parse_uuid(institution, "filter.financial_institution_id") if institution else None
        ),
        category_id=parse_uuid(category, "filter.category_id") if category else None,
    )


def parse_allocation(data: dict[str, Any], field: str) -> AnnualBudgetAllocation:
    if "category_id" not in data or "amount" not in data:
        raise InvalidConfigurationError(field, data, "category_id and amount are required")
    override = data.get("policy_override")
    amount = parse_decimal(data["amount"], f"{field}.amount")
    if amount < 0:
        raise InvalidConfigurationError(f"{field}.amount", data["amount"], "must not be negative")
    return AnnualBudgetAllocation(
        category_id=parse_uuid(data["category_id"], f"{field}.category_id"),
        amount=amount,
        policy_override=(
            parse_enum(AnnualBudgetPolicy, override, f"{field}.policy_override")
            if override is not None
            else None
        ),
    )


def parse_annual_budget_config(data: dict[str, Any], index: int = 0) -> AnnualBudgetConfig:
    field = f"annual_budgets[{index}]"
    if "year" not in data or "total_amount" not in data:
        raise InvalidConfigurationError(field, data, "year and total_amount are required")
    total = parse_decimal(data["total_amount"], f"{field}.total_amount")
    if total < 0:
        raise InvalidConfigurationError(
            f"{field}.total_amount", data["total_amount"], "must not be negative"
        )
    return AnnualBudgetConfig(
        year=parse_year(data["year"], f"{field}.year"),
        total_amount=total,
        policy=parse_enum(
            AnnualBudgetPolicy,
            data.get("policy", AnnualBudgetPolicy.AUTOMATIC.value),
            f"{field}.policy",
        ),
        allocations=tuple(
            parse_allocation(item, f"{field}.allocations[{i}]")
            for i, item in enumerate(data.get("allocations") or [])
        ),
    )


def parse_settings(data: dict[str, Any]) -> BudgetSettings:
    """Build ``BudgetSettings`` from an already-loaded mapping."""
    annual = tuple(
        parse_annual_budget_config(item, i)
        for i, item in enumerate(data.get("annual_budgets") or [])
    )
    years = [c.year for c in annual]
    duplicated = sorted({y for y in years if years.count(y) > 1})
    if duplicated:
        raise InvalidConfigurationError("annual_budgets", duplicated, "one config per year")

    return BudgetSettings(
        period=parse_period_settings(data.get("period") or {}),
        holidays=tuple(
            sorted(parse_date(d, "holidays") for d in data.get("holidays") or [])
        ),
        filter=parse_filter(data.get("filter") or {}),
        annual_budgets=annual,
        checksum=compute_checksum(data),
    )


def load_settings(path: Path | str) -> BudgetSettings:
    path = Path(path)
    settings = parse_settings(load_yaml_file(path))
    logger.info("budget_settings_loaded", extra={
        "path": str(path),
        "checksum": settings.checksum,
        "annual_budget_years": [c.year for c in settings.annual_budgets],
        "holiday_count": len(settings.holidays),
    })
    return settings


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
