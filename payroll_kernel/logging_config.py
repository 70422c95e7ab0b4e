"""
Structured JSON logging for payroll runs and credit assessments.

Every record is one JSON line.  Records emitted while a payslip, loan or
salary advance is being processed carry the identifiers of that subject
(``employee_id``, ``loan_id``, ``advance_id``) plus the ``jurisdiction``
and ``run_id`` of the surrounding batch, so a payroll administrator can
filter a run's output down to one person or one loan.

Subject identifiers are bound with ``LogContext.bind`` for the duration
of a block.  The engine tracer binds them automatically from the engine
inputs; callers bind ``run_id`` and anything else they know.

Money is serialized as the exact Decimal string and dates as ISO strings;
nothing is converted through float.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any

from payroll_kernel.exceptions import PayrollKernelError

CONTEXT_FIELDS = ("run_id", "jurisdiction", "employee_id", "loan_id", "advance_id")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("payroll_log_context", default=_EMPTY)


class LogContext:
    """Subject identifiers attached to every record logged inside a block."""

    @staticmethod
    def current() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[dict[str, str]]:
        """
        Add ``fields`` to the context for the duration of the block.

        None values are ignored, so a loan without an id leaves an outer
        ``loan_id`` in place.  Unknown field names raise ValueError.
        """
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise ValueError(f"unknown log context field(s): {sorted(unknown)}")
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        token = _context.set(MappingProxyType(merged))
        try:
            yield dict(merged)
        finally:
            _context.reset(token)

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)


_RECORD_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error": str(exc),
    }
    if isinstance(exc, PayrollKernelError):
        fields["error_code"] = exc.code
        fields.update(
            (f"error_{name}", value)
            for name, value in vars(exc).items()
            if not name.startswith("_")
        )
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, subject context, extras, error."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None) or _context.get().get(key)
            if value is not None:
                payload[key] = value
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_KEYS and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default)


_ROOT = "payroll_kernel"
_handler: logging.Handler | None = None


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``payroll_kernel`` hierarchy."""
    return logging.getLogger(f"{_ROOT}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install the JSON handler on ``payroll_kernel``; later calls are no-ops."""
    global _handler
    if _handler is not None:
        return
    _handler = handler or logging.StreamHandler(stream or sys.stderr)
    _handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(_ROOT)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(_handler)


def reset_logging() -> None:
    """Remove the installed handler and restore propagation. Tests only."""
    global _handler
    root = logging.getLogger(_ROOT)
    if _handler is not None:
        root.removeHandler(_handler)
        _handler = None
    root.setLevel(logging.WARNING)
    root.propagate = True
