"""
Deterministic hashing utilities.

All hashing in the billing kernel is deterministic and reproducible.
This module provides the canonical hashing functions used for the audit
chain, configuration checksums and engine input fingerprints.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Context, Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# Wide enough that normalize() never rounds a stored value
_WIDE_CONTEXT = Context(prec=100)


def _json_serializer(obj: Any) -> Any:
    """Serialize types json does not handle natively."""
    if isinstance(obj, Decimal):
        # Trailing zeros dropped, never exponent notation
        return format(obj.normalize(_WIDE_CONTEXT), "f")
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    if isinstance(obj, tuple):
        return list(obj)

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """
    Convert data to a canonical JSON string.

    Keys sorted, no whitespace, consistent handling of Decimal, dates,
    UUIDs and enums.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def to_json_safe(data: Any) -> Any:
    """Round-trip through canonical JSON so the value can go in a JSON column."""
    return json.loads(canonicalize_json(data))


def hash_payload(payload: Any) -> str:
    """Hex-encoded SHA-256 of the canonical JSON form of ``payload``."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_audit_event(
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Compute the chained hash of an audit event.

    hash = SHA-256(entity_type | entity_id | action | payload_hash | prev_hash),
    with ``GENESIS`` standing in for the missing predecessor of the first
    event.
    """
    components = [
        entity_type,
        str(entity_id),
        action,
        payload_hash,
        prev_hash or "GENESIS",
    ]
    data = "|".join(components)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
