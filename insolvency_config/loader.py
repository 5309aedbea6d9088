"""
Settings loader (``insolvency_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into ``LedgerSettings``.  The
single public entry point for runtime settings is
``insolvency_config.get_active_config()``.

Invariants enforced
-------------------
* Unknown keys are rejected; a typo never becomes a silent default.
* ``validate_settings`` rejects out-of-range values with ``ValueError``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  effective settings for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from insolvency_config.schema import LedgerSettings

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")
    return data


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """Parse a dict (the ``ledger`` section, or the whole document) into settings."""
    section = data.get("ledger", data)
    if not isinstance(section, dict):
        raise ValueError("'ledger' section must be a mapping")

    known = {f.name for f in fields(LedgerSettings)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ValueError(f"Unknown settings keys: {', '.join(unknown)}")

    return validate_settings(LedgerSettings(**section))


def load_settings(path: Path | str) -> LedgerSettings:
    """Load and validate settings from a YAML file."""
    return parse_settings(load_yaml_file(Path(path)))


def validate_settings(settings: LedgerSettings) -> LedgerSettings:
    """
    Check every value is in range.

    Returns the settings unchanged, normalizing ``log_level`` and
    ``default_currency`` to upper case.

    Raises:
        ValueError: listing every invalid value.
    """
    errors: list[str] = []

    if not isinstance(settings.database_url, str) or not settings.database_url.strip():
        errors.append("database_url must be a non-empty string")
    if not isinstance(settings.echo_sql, bool):
        errors.append("echo_sql must be a boolean")
    for name in ("pool_size", "pool_timeout", "history_page_size"):
        value = getattr(settings, name)
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            errors.append(f"{name} must be a positive integer")
    for name in ("max_overflow", "conflict_retries"):
        value = getattr(settings, name)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            errors.append(f"{name} must be a non-negative integer")
    backoff = settings.conflict_backoff_seconds
    if isinstance(backoff, bool) or not isinstance(backoff, (int, float)) or backoff < 0:
        errors.append("conflict_backoff_seconds must be a non-negative number")

    currency = str(settings.default_currency).upper()
    if len(currency) != 3 or not currency.isalpha():
        errors.append("default_currency must be a three-letter ISO 4217 code")
    level = str(settings.log_level).upper()
    if level not in _LOG_LEVELS:
        errors.append(f"log_level must be one of {', '.join(_LOG_LEVELS)}")

    if errors:
        raise ValueError(
            "Settings validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )

    if currency == settings.default_currency and level == settings.log_level:
        return settings
    return LedgerSettings(
        **{**settings.to_dict(), "default_currency": currency, "log_level": level}
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
