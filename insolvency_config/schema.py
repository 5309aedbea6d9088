"""
LedgerSettings schema.

The effective runtime settings for the case ledger.  YAML files are parsed
into this frozen dataclass by the loader; ``get_active_config()`` applies
environment overrides and validation on top.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class LedgerSettings:
    """Runtime settings for the ledger and its facade."""

    database_url: str = "sqlite:///insolvency_ledger.db"
    echo_sql: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    default_currency: str = "AUD"
    history_page_size: int = 100
    conflict_retries: int = 3
    conflict_backoff_seconds: float = 0.05
    log_level: str = "INFO"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def redacted(self) -> dict[str, Any]:
        """Settings safe to log: credentials are stripped from the URL."""
        data = self.to_dict()
        url = data["database_url"]
        if "@" in url and "://" in url:
            scheme, rest = url.split("://", 1)
            data["database_url"] = f"{scheme}://***@{rest.split('@', 1)[1]}"
        return data
