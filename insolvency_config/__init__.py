"""
insolvency_config -- single public entrypoint for ledger settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_config()``.  No other component reads settings files or
    environment variables directly.

Architecture position:
    Configuration.  Sits beside ``insolvency_kernel`` and below
    ``insolvency_services``.  The kernel MUST NEVER import from
    ``insolvency_config``; the facade passes settings values down.

Invariants enforced:
    - Single entrypoint: all runtime settings flow through
      ``get_active_config()``.
    - Validation: out-of-range values raise ``ValueError`` before any
      settings object is returned.
    - Deterministic checksum: the same effective settings always produce
      the same SHA-256 checksum.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every successful call emits a ``config_loaded`` log entry with the
    source path and checksum of the effective settings.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

from insolvency_config.loader import (
    compute_checksum,
    load_settings,
    validate_settings,
)
from insolvency_config.schema import LedgerSettings
from insolvency_kernel.logging_config import get_logger

__all__ = [
    "CONFIG_ENV_VAR",
    "DATABASE_URL_ENV_VAR",
    "LedgerSettings",
    "get_active_config",
    "load_settings",
]

_logger = get_logger("config")

CONFIG_ENV_VAR = "INSOLVENCY_LEDGER_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> LedgerSettings:
    """The ONLY public settings entrypoint.

    Resolution order for the file: ``config_path``, then the
    ``INSOLVENCY_LEDGER_CONFIG`` environment variable, then the packaged
    ``sets/default.yaml``.  A ``DATABASE_URL`` environment variable
    overrides the file's ``database_url``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ValueError: If settings validation fails.
    """
    source = Path(config_path or os.environ.get(CONFIG_ENV_VAR) or _DEFAULT_CONFIG_PATH)
    settings = load_settings(source)

    database_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if database_url:
        settings = validate_settings(replace(settings, database_url=database_url))

    _logger.info(
        "config_loaded",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "source": str(source),
            "checksum": compute_checksum(settings.to_dict()),
            "settings": settings.redacted(),
        },
    )
    return settings
