"""Database layer - engine, base classes, money types, and immutability listeners."""

from insolvency_kernel.db.base import Base, TrackedBase, UUIDString
from insolvency_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from insolvency_kernel.db.types import MONEY_QUANTUM, parse_money, validate_currency

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "MONEY_QUANTUM",
    "parse_money",
    "validate_currency",
]
