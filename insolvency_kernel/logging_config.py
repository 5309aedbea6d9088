"""
Module: insolvency_kernel.logging_config
Responsibility: Structured JSON logging for the kernel, the engines, the
    settings loader and the facade.  One JSON object per line, with the
    request-scoped LogContext fields merged into every record.
Architecture position: Kernel root.  Imported by every layer; imports
    nothing else from the kernel.

Invariants enforced:
    - Every record carries ts, level, logger and message.
    - Money renders in fixed-point notation ("1000.00", never "1E+3").
    - Creditor contact details are masked before a record reaches a sink.
    - configure_logging() is idempotent; reset_logging() exists for tests.
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
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

CONTEXT_FIELDS = ("correlation_id", "case_id", "actor_id", "operation", "trace_id")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"log_{name}", default=None) for name in CONTEXT_FIELDS
}


class LogContext:
    """
    Request-scoped log fields, isolated per thread and per asyncio task.

    CaseLedger binds correlation_id, case_id, actor_id and operation around
    every call, so service log lines need not repeat them.
    """

    @staticmethod
    def set(**fields: object) -> None:
        """Set context fields.  None values and unknown names are ignored."""
        for name, value in fields.items():
            var = _context_vars.get(name)
            if var is not None and value is not None:
                var.set(str(value))

    @staticmethod
    def get_all() -> dict[str, str]:
        """All fields currently set."""
        return {
            name: value
            for name, var in _context_vars.items()
            if (value := var.get()) is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: object) -> Iterator[None]:
        """Set fields for the duration of a ``with`` block, then restore them."""
        tokens = []
        for name, value in fields.items():
            var = _context_vars.get(name)
            if var is not None and value is not None:
                tokens.append((var, var.set(str(value))))
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}

# Creditor personal data
REDACTED_KEYS = frozenset({"contact_email", "contact_phone"})
REDACTED = "***"


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return format(obj, "f")
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    return str(obj)


def _redact(key: str, value: Any) -> Any:
    if key in REDACTED_KEYS and value is not None:
        return REDACTED
    if isinstance(value, Mapping):
        return {k: _redact(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_redact("", v) for v in value]
    return value


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        # extra={...} fields; the envelope and context win on name clashes
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = _redact(key, val)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # Structured attributes of InsolvencyKernelError subclasses
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "code":
                fields[f"exc_{name}"] = _redact(name, value)
        return fields


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "insolvency_kernel"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the insolvency_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the insolvency_kernel logger hierarchy.

    ``level`` accepts a level number or name (settings carry names).  Only
    the first call has any effect until reset_logging().
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level.upper() if isinstance(level, str) else level)
    root_logger.propagate = False

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Reset logging configuration. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
