"""
budget_engines.tracer -- Engine invocation tracer emitting BUDGET_ENGINE_TRACE.

Responsibility:
    ``@traced_engine`` wraps a public calculation entry point and logs one
    trace record per call: engine name and version, a fingerprint of the
    selected keyword inputs, and the wall-clock duration.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; does not mutate inputs or results.

Failure modes:
    - Arguments are bound to the wrapped function's signature, so a field
      passed positionally is fingerprinted the same as one passed by keyword.
      Fields left at their default or absent from the signature are "null".
    - Unknown types fall back to ``str(value)``. Domain records are frozen
      dataclasses with a stable repr, so the fingerprint stays deterministic.

Usage:
    from budget_engines.tracer import traced_engine

    @traced_engine("budget", "1.0", fingerprint_fields=("year", "month"))
    def calculate_monthly_budget(self, *, transactions, budgets, year, month):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from budget_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")

TRACE_EVENT = "BUDGET_ENGINE_TRACE"


def _canonicalize(value: Any) -> str:
    match value:
        case None:
            return "null"
        case Enum():
            return str(value.value)
        case str():
            return value
        case bool() | int() | float() | Decimal():
            return str(value)
        case date():
            return value.isoformat()
        case Mapping():
            pairs = sorted((str(k), _canonicalize(v)) for k, v in value.items())
            return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"
        case set() | frozenset():
            return "{" + ",".join(sorted(_canonicalize(v) for v in value)) + "}"
        case list() | tuple():
            return "[" + ",".join(_canonicalize(v) for v in value) + "]"
        case _:
            return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """Deterministic 16-hex-char SHA-256 prefix over the selected fields."""
    canonical = "|".join(
        f"{name}={_canonicalize(kwargs.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator emitting BUDGET_ENGINE_TRACE after each successful call.

    Args:
        engine_name: Engine identifier (e.g., "annual_allocation").
        engine_version: Engine version (e.g., "1.0").
        fingerprint_fields: Parameter names folded into the
            input fingerprint.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.monotonic()
            result = func(*args, **kwargs)
            elapsed_ms = round((time.monotonic() - started) * 1000, 2)

            logger.info(
                TRACE_EVENT,
                extra={
                    "trace_type": TRACE_EVENT,
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": (
                        compute_input_fingerprint(
                            fingerprint_fields,
                            signature.bind_partial(*args, **kwargs).arguments,
                        )
                        if fingerprint_fields
                        else ""
                    ),
                    "duration_ms": elapsed_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
