"""
Module: insolvency_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines used by the
    distribution service.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    MUST NOT import insolvency_services or kernel services/selectors.

Invariants enforced:
    - Decimal-only arithmetic; floats are forbidden.
    - Determinism: identical inputs always produce identical outputs.
    - Every engine invocation is traced via ``@traced_engine``.
"""

from insolvency_engines.apportionment import (
    DEFAULT_QUANTUM,
    ApportionedShare,
    ApportionmentEngine,
    ApportionmentResult,
)
from insolvency_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "DEFAULT_QUANTUM",
    "ApportionedShare",
    "ApportionmentEngine",
    "ApportionmentResult",
    "compute_input_fingerprint",
    "traced_engine",
]
