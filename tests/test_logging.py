"""
Tests for budget_kernel.logging_config.

Covers:
- JSON rendering of domain values (UUID, Decimal, dates, sets, enums)
- LogContext fields, bind/restore and unknown-field handling
- Exception fields for every BudgetKernelError subclass
- configure_logging / reset_logging lifecycle
- Event payloads emitted by the engines
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from budget_engines.annual_allocation import AnnualBudgetAllocator
from budget_engines.annual_allocation.models import AllocationCalculationParams
from budget_engines.budget import BudgetCalculator
from budget_engines.cache import BudgetCalculationCache, CacheTarget
from budget_kernel.domain.annual import AnnualBudgetConfig, AnnualBudgetPolicy
from budget_kernel.exceptions import (
    BudgetKernelError,
    CategoryHierarchyError,
    DuplicateAllocationCategoryError,
    InvalidConfigurationError,
)
from budget_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)

from tests.builders import budget, expense, major


def _render(message, *, extra=None, exc=None, level=logging.INFO):
    """Format one record directly, bypassing handler configuration."""
    exc_info = (type(exc), exc, exc.__traceback__) if exc is not None else None
    record = logging.getLogger("budget_kernel.test").makeRecord(
        "budget_kernel.test", level, __file__, 1, message, (), exc_info, extra=extra
    )
    return json.loads(StructuredFormatter().format(record))


def _raised(error):
    try:
        raise error
    except BudgetKernelError as exc:
        return exc


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------


class TestValueSerialization:
    """Domain values in ``extra`` payloads become plain JSON."""

    def test_envelope(self):
        record = _render("hello", level=logging.WARNING)
        assert record["message"] == "hello"
        assert record["level"] == "WARNING"
        assert record["logger"] == "budget_kernel.test"
        assert datetime.fromisoformat(record["ts"]).tzinfo is not None

    def test_uuid_and_decimal_as_strings(self):
        category_id = uuid4()
        record = _render("v", extra={"category_id": category_id, "amount": Decimal("12500.50")})
        assert record["category_id"] == str(category_id)
        assert record["amount"] == "12500.50"

    def test_dates_as_iso(self):
        record = _render("v", extra={
            "day": date(2025, 4, 25),
            "at": datetime(2025, 6, 15, 9, 0, tzinfo=timezone.utc),
        })
        assert record["day"] == "2025-04-25"
        assert record["at"] == "2025-06-15T09:00:00+00:00"

    def test_sets_sorted(self):
        a, b = sorted([uuid4(), uuid4()], key=str)
        record = _render("v", extra={"ids": frozenset({b, a}), "names": {"外食", "住居"}})
        assert record["ids"] == [str(a), str(b)]
        assert record["names"] == sorted(["外食", "住居"])

    def test_enums_by_value(self):
        record = _render("v", extra={
            "policy": AnnualBudgetPolicy.FULL_COVERAGE,
            "target": CacheTarget.MONTHLY_BUDGET,
        })
        assert record["policy"] == "full_coverage"
        assert record["target"] == CacheTarget.MONTHLY_BUDGET.value

    def test_nested_values(self):
        record = _render("v", extra={"months": [{"amount": Decimal("1"), "day": date(2025, 1, 1)}]})
        assert record["months"] == [{"amount": "1", "day": "2025-01-01"}]

    def test_extra_never_overrides_envelope_or_context(self):
        LogContext.set(household_id="home-1")
        record = _render("v", extra={"household_id": "spoofed"})
        assert record["household_id"] == "home-1"


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:
    """Calculation-scoped fields attached to every record."""

    def test_fields_appear_on_records(self):
        LogContext.set(correlation_id="c-1", household_id="home-1", actor_id="a", trace_id="t")
        record = _render("v")
        assert (record["correlation_id"], record["household_id"]) == ("c-1", "home-1")
        assert (record["actor_id"], record["trace_id"]) == ("a", "t")

    def test_none_leaves_field_untouched(self):
        LogContext.set(household_id="home-1")
        LogContext.set(household_id=None, actor_id="a")
        assert LogContext.get_all() == {"household_id": "home-1", "actor_id": "a"}

    def test_empty_context_adds_nothing(self):
        record = _render("v")
        assert not {"correlation_id", "household_id", "actor_id", "trace_id"} & set(record)

    def test_bind_restores_previous_values(self):
        LogContext.set(household_id="outer")
        with LogContext.bind(household_id="inner", trace_id="t-1") as ctx:
            assert ctx is LogContext
            assert LogContext.get_all() == {"household_id": "inner", "trace_id": "t-1"}
        assert LogContext.get_all() == {"household_id": "outer"}

    def test_bind_drops_unknown_and_none_fields(self):
        with LogContext.bind(household_id="h", ledger="x", actor_id=None):
            assert LogContext.get_all() == {"household_id": "h"}
        assert LogContext.get_all() == {}

    def test_nested_binds_unwind_in_order(self):
        with LogContext.bind(correlation_id="1"):
            with LogContext.bind(correlation_id="2"):
                assert LogContext.get_all()["correlation_id"] == "2"
            assert LogContext.get_all()["correlation_id"] == "1"
        assert "correlation_id" not in LogContext.get_all()


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class TestExceptionFields:
    """Error code and public attributes are flattened into ``exc_*``."""

    def test_plain_exception(self):
        try:
            raise ValueError("boom")
        except ValueError as exc:
            record = _render("failed", exc=exc)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record
        assert "ValueError: boom" in record["traceback"]

    def test_category_hierarchy_error(self):
        category_id, parent_id = uuid4(), uuid4()
        exc = _raised(CategoryHierarchyError(category_id, parent_id, "parent is missing"))
        record = _render("failed", exc=exc)
        assert record["exc_code"] == "CATEGORY_HIERARCHY_INVALID"
        assert record["exc_category_id"] == str(category_id)
        assert record["exc_parent_id"] == str(parent_id)
        assert record["exc_reason"] == "parent is missing"

    def test_duplicate_allocation_category_error(self):
        a, b = sorted([uuid4(), uuid4()], key=str)
        record = _render("failed", exc=_raised(DuplicateAllocationCategoryError(2025, [b, a])))
        assert record["exc_code"] == "DUPLICATE_ALLOCATION_CATEGORY"
        assert record["exc_year"] == 2025
        assert record["exc_category_ids"] == [str(a), str(b)]

    def test_invalid_configuration_error(self):
        exc = _raised(InvalidConfigurationError("period.month_start_day", 31, "must be 1..28"))
        record = _render("failed", exc=exc)
        assert record["exc_code"] == "INVALID_CONFIGURATION"
        assert record["exc_type"] == "InvalidConfigurationError"
        assert record["exc_field"] == "period.month_start_day"
        assert record["exc_value"] == 31


# ---------------------------------------------------------------------------
# Configuration lifecycle
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """configure_logging attaches one JSON handler until reset."""

    @pytest.fixture(autouse=True)
    def _isolated(self):
        reset_logging()
        yield
        reset_logging()

    def test_level_and_handler(self):
        stream = StringIO()
        configure_logging(level=logging.INFO, stream=stream)
        logger = get_logger("engines.sample")
        logger.debug("dropped")
        logger.info("kept")
        lines = stream.getvalue().strip().splitlines()
        assert [json.loads(line)["message"] for line in lines] == ["kept"]
        assert json.loads(lines[0])["logger"] == "budget_kernel.engines.sample"

    def test_second_call_is_a_no_op(self):
        first, second = StringIO(), StringIO()
        configure_logging(stream=first)
        configure_logging(stream=second)
        get_logger("x").info("once")
        assert first.getvalue().count("once") == 1
        assert second.getvalue() == ""

    def test_reset_detaches_handlers(self):
        configure_logging(stream=StringIO())
        reset_logging()
        root = logging.getLogger("budget_kernel")
        assert root.handlers == []
        assert root.propagate is True


# ---------------------------------------------------------------------------
# Engine event payloads
# ---------------------------------------------------------------------------


class TestEngineEvents:
    """Structured events the engines emit."""

    def setup_method(self):
        self.food = major("食費")
        self.transactions = [expense(3000, date(2025, 4, 10), major_id=self.food.id)]

    def _events(self, logs, message):
        return [r for r in logs if r["message"] == message]

    def test_monthly_budget_calculated(self, captured_logs):
        BudgetCalculator().calculate_monthly_budget(
            transactions=self.transactions,
            budgets=[budget(50000), budget(10000, category=self.food)],
            categories=[self.food],
            year=2025,
            month=4,
        )
        (event,) = self._events(captured_logs(), "monthly_budget_calculated")
        assert event["logger"] == "budget_kernel.engines.budget"
        assert (event["year"], event["month"]) == (2025, 4)
        assert event["has_overall_budget"] is True
        assert event["category_budget_count"] == 1

    def test_unknown_category_budget_warns(self, captured_logs):
        orphan = major("未登録")
        stray = budget(5000, category=orphan)
        BudgetCalculator().calculate_monthly_budget(
            transactions=self.transactions,
            budgets=[stray],
            categories=[self.food],
            year=2025,
            month=4,
        )
        (event,) = self._events(captured_logs(), "budget_category_not_found")
        assert event["level"] == "WARNING"
        assert event["budget_id"] == str(stray.id)
        assert event["category_id"] == str(orphan.id)

    def test_disabled_allocation(self, captured_logs):
        params = AllocationCalculationParams(
            transactions=self.transactions,
            budgets=[],
            categories=[self.food],
            annual_budget_config=AnnualBudgetConfig(
                year=2025, total_amount=Decimal("100000"), policy=AnnualBudgetPolicy.DISABLED
            ),
        )
        AnnualBudgetAllocator().calculate_annual_budget_usage(params)
        logs = captured_logs()
        assert self._events(logs, "annual_allocation_disabled")[0]["year"] == 2025
        assert self._events(logs, "annual_allocation_started") == []

    def test_cache_invalidation_names_targets(self, captured_logs):
        BudgetCalculationCache().invalidate(CacheTarget.MONTHLY_BUDGET | CacheTarget.MONTHLY_SAVINGS)
        (event,) = self._events(captured_logs(), "budget_cache_invalidated")
        assert event["targets"] == ["MONTHLY_BUDGET", "MONTHLY_SAVINGS"]

    def test_context_reaches_engine_events(self, captured_logs):
        with LogContext.bind(household_id="home-42", correlation_id="req-7"):
            BudgetCalculator().calculate_monthly_budget(
                transactions=self.transactions, budgets=[], year=2025, month=4
            )
        logs = captured_logs()
        events = self._events(logs, "monthly_budget_calculated") + self._events(
            logs, "BUDGET_ENGINE_TRACE"
        )
        # the budget trace plus the nested aggregation trace
        assert len(events) == 3
        for event in events:
            assert event["household_id"] == "home-42"
            assert event["correlation_id"] == "req-7"
        assert LogContext.get_all() == {}
