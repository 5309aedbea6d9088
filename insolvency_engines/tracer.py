"""
insolvency_engines.tracer -- ENGINE_TRACE records for pure engine calls.

Responsibility:
    ``@traced_engine`` wraps an engine method and logs one ENGINE_TRACE
    record per call: which engine and version ran, a fingerprint of the
    inputs that determine its output, how long it took, whether it
    raised, and an optional summary of the result.  A distribution round
    can be matched to the apportionment call that produced it by
    fingerprint alone.

Architecture position:
    Engines -- the only logging the calculation layer does.  No clock
    reads enter the result; the timing is for the trace record only.

Failure modes:
    - Exceptions from the engine are logged (outcome="error") and re-raised
      unchanged.
    - Inputs that are neither JSON types, Decimals, mappings nor sequences
      are fingerprinted by ``str()``.
"""

from __future__ import annotations

import functools
import hashlib
import json
import time
from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any

from insolvency_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

FINGERPRINT_LENGTH = 16


def _fingerprint_form(value: Any) -> Any:
    # Decimal("5") and Decimal("5.00") are the same input
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Mapping):
        return sorted([str(k), _fingerprint_form(v)] for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return [_fingerprint_form(v) for v in value]
    return str(value)


def compute_input_fingerprint(fields: tuple[str, ...], kwargs: Mapping[str, Any]) -> str:
    """SHA-256 prefix over the named keyword arguments (absent ones count as null)."""
    form = {name: _fingerprint_form(kwargs.get(name)) for name in fields}
    digest = hashlib.sha256(
        json.dumps(form, sort_keys=True, separators=(",", ":")).encode("utf-8")
    )
    return digest.hexdigest()[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
    summarize: Callable[[Any], Mapping[str, Any]] | None = None,
) -> Callable:
    """
    Decorate an engine method so every call emits ENGINE_TRACE.

    ``fingerprint_fields`` names the keyword arguments hashed into
    ``input_fingerprint``.  ``summarize`` maps the engine's result to extra
    trace fields; it is not called when the engine raises.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            trace: dict[str, Any] = {
                "trace_type": "ENGINE_TRACE",
                "engine_name": engine_name,
                "engine_version": engine_version,
                "function": func.__qualname__,
                "input_fingerprint": (
                    compute_input_fingerprint(fingerprint_fields, kwargs)
                    if fingerprint_fields
                    else ""
                ),
            }
            t0 = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                trace.update(
                    outcome="error",
                    error_type=type(exc).__name__,
                    duration_ms=round((time.monotonic() - t0) * 1000, 2),
                )
                _logger.info("ENGINE_TRACE", extra=trace)
                raise

            trace.update(outcome="ok", duration_ms=round((time.monotonic() - t0) * 1000, 2))
            if summarize is not None:
                trace.update(summarize(result))
            _logger.info("ENGINE_TRACE", extra=trace)
            return result

        return wrapper

    return decorator
