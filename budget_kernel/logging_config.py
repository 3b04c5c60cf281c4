"""Structured JSON logging for the budget kernel.

Every record under the ``budget_kernel`` logger namespace is rendered as one
JSON object per line: a fixed envelope (ts, level, logger, message), the
calculation-scoped context fields currently bound in ``LogContext``, any
``extra`` payload passed by the caller, and, for exceptions, the error's
``code`` plus its public attributes.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"budget_log_{name}", default=None)
    for name in ("correlation_id", "household_id", "actor_id", "trace_id")
}


class LogContext:
    """Thread-safe / async-safe holder for calculation-scoped log fields.

    Known fields: correlation_id, household_id, actor_id, trace_id.
    Unknown names passed to ``bind`` are ignored.
    """

    @staticmethod
    def set(
        *,
        correlation_id: str | None = None,
        household_id: str | None = None,
        actor_id: str | None = None,
        trace_id: str | None = None,
    ) -> None:
        """Set context fields. Only non-None values are updated."""
        for name, val in (
            ("correlation_id", correlation_id),
            ("household_id", household_id),
            ("actor_id", actor_id),
            ("trace_id", trace_id),
        ):
            if val is not None:
                _CONTEXT_VARS[name].set(val)

    @staticmethod
    def get_all() -> dict[str, str]:
        return {
            name: var.get()
            for name, var in _CONTEXT_VARS.items()
            if var.get() is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _CONTEXT_VARS.values():
            var.set(None)

    @staticmethod
    def bind(**fields: str | None) -> "_BoundContext":
        """Context manager that sets fields on entry and restores them on exit."""
        return _BoundContext(fields)


class _BoundContext:
    def __init__(self, fields: dict[str, str | None]):
        self._fields = {
            k: v for k, v in fields.items() if v is not None and k in _CONTEXT_VARS
        }
        self._tokens: list[tuple[ContextVar[str | None], Any]] = []

    def __enter__(self) -> type[LogContext]:
        self._tokens = [
            (_CONTEXT_VARS[name], _CONTEXT_VARS[name].set(val))
            for name, val in self._fields.items()
        ]
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RESERVED_RECORD_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    """Serialize domain values found in log payloads."""
    match obj:
        case Enum():
            return obj.value
        case UUID() | Decimal():
            return str(obj)
        case datetime() | date():
            return obj.isoformat()
        case set() | frozenset():
            return sorted(str(v) for v in obj)
        case _:
            return str(obj)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = self._envelope(record)
        payload.update(LogContext.get_all())
        for key, val in vars(record).items():
            if key not in _RESERVED_RECORD_KEYS:
                payload.setdefault(key, val)
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default)

    @staticmethod
    def _envelope(record: logging.LogRecord) -> dict[str, Any]:
        return {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # BudgetKernelError subclasses carry their context as public attributes
        for name, val in vars(exc).items():
            if not name.startswith("_") and name != "code":
                fields[f"exc_{name}"] = val
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


# ---------------------------------------------------------------------------
# Logger factory and initialization
# ---------------------------------------------------------------------------

_ROOT_LOGGER = "budget_kernel"
_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` under the budget_kernel namespace, e.g. ``engines.budget``."""
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the budget_kernel logger. Later calls are no-ops."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(_ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(handler)


def reset_logging() -> None:
    """Undo ``configure_logging``; used between test sessions."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_ROOT_LOGGER)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
