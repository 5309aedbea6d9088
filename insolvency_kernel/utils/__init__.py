"""Hashing helpers for the activity log chain."""

from insolvency_kernel.utils.hashing import (
    GENESIS_MARKER,
    canonicalize_json,
    hash_activity_entry,
    hash_payload,
    to_json_safe,
)

__all__ = [
    "GENESIS_MARKER",
    "canonicalize_json",
    "hash_activity_entry",
    "hash_payload",
    "to_json_safe",
]
