"""
Hashing for the activity log chain.

A snapshot is reduced to canonical JSON (sorted keys, no whitespace, money
at two places) before hashing, so the hash computed at INSERT is the hash
recomputed from the stored JSON column at verification time.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

GENESIS_MARKER = "GENESIS"

_ENCODERS: tuple[tuple[type | tuple[type, ...], Any], ...] = (
    (Decimal, lambda d: f"{d:.2f}"),
    (Enum, lambda e: e.value),
    ((datetime, date), lambda d: d.isoformat()),
    (UUID, str),
)


def _encode(obj: Any) -> Any:
    for types, encode in _ENCODERS:
        if isinstance(obj, types):
            return encode(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def canonicalize_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_encode)


def to_json_safe(data: Any) -> Any:
    """The snapshot as it will read back from a JSON column."""
    return json.loads(canonicalize_json(data))


def hash_payload(payload: Any) -> str:
    return _sha256(canonicalize_json(payload))


def hash_activity_entry(
    entity_type: str,
    entity_id: str | None,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Chain hash of one activity entry.

    Covers the entity, the action, the snapshot hash and the hash of the
    previous entry in the same case scope (GENESIS_MARKER for the first).
    """
    return _sha256(
        "|".join(
            (
                entity_type,
                "" if entity_id is None else str(entity_id),
                action,
                payload_hash,
                prev_hash or GENESIS_MARKER,
            )
        )
    )
