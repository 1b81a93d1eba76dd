"""
payroll_engines.tracer -- PAYROLL_ENGINE_TRACE records for calculator calls.

Responsibility:
    ``@traced_engine`` wraps a calculator method and, after it returns,
    logs which engine ran, its version, a short fingerprint of the inputs
    named in ``fingerprint_fields`` and the elapsed time.  Two ledgers
    computed from the same profile and rules therefore show the same
    fingerprints in the log, which is how a recomputation is traced back
    to its inputs.

Architecture position:
    Engines -- support for the pure calculation layer.  The only side effect
    is the log record.

Invariants enforced:
    - The fingerprint reuses the kernel's canonical JSON, so a Decimal,
      date or Enum argument contributes the same text it does to a run
      fingerprint.  Frozen dataclasses (profiles, periods) are expanded
      field by field.
    - Exceptions raised by the wrapped method propagate untouched and no
      trace record is written for the failed call.

Failure modes:
    - A field name that is not bound in the call is fingerprinted as null.
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from typing import Any

from payroll_kernel.logging_config import get_logger
from payroll_kernel.utils.hashing import canonicalize_json

_logger = get_logger("engines.tracer")

FINGERPRINT_LENGTH = 16


def _plain(value: Any) -> Any:
    """Reduce a call argument to JSON-friendly structure."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_plain(v) for v in value), key=canonicalize_json)
    return value


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """First ``FINGERPRINT_LENGTH`` hex chars of the SHA-256 of the named arguments."""
    selected = {name: _plain(arguments.get(name)) for name in fingerprint_fields}
    try:
        canonical = canonicalize_json(selected)
    except TypeError:
        # Argument of a type the canonical JSON does not know; fall back to repr.
        canonical = repr(sorted(selected.items()))
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return digest[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Decorate a calculator method with PAYROLL_ENGINE_TRACE logging.

    ``fingerprint_fields`` names parameters of the wrapped function, whether
    passed positionally or by keyword.  ``self`` is never fingerprinted.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 3)

            fingerprint = None
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            _logger.info(
                "PAYROLL_ENGINE_TRACE",
                extra={
                    "trace_type": "PAYROLL_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "duration_ms": elapsed_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
