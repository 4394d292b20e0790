"""
Deterministic hashing utilities.

All hashing in the certification kernel must be deterministic and
reproducible.  This module provides the canonical hashing functions used for
the status history chain and for reconciliation report checksums.
"""

import hashlib
import json
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

GENESIS = "GENESIS"


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, datetime):
        return normalize_timestamp(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def normalize_timestamp(value: datetime) -> str:
    """
    UTC, microsecond-precision rendering of a timestamp.

    Naive values are taken to be UTC, so a timestamp hashes the same before
    and after a database round trip.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Keys are sorted, there is no whitespace, and special types (datetime,
    UUID, enums) are rendered consistently.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Hex-encoded SHA-256 of the canonical JSON form of ``payload``."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_status_change(
    customer_id: UUID | str,
    seq: int,
    from_status: Any,
    to_status: Any,
    reason: str | None,
    actor: str,
    changed_at: datetime,
    prev_hash: str | None,
) -> str:
    """
    Compute the chain hash of one status history record.

    The hash covers every field of the record plus the previous record's
    hash, so editing or removing any record breaks every later hash.
    """
    components = [
        str(customer_id),
        str(seq),
        getattr(from_status, "value", from_status) or "",
        getattr(to_status, "value", to_status),
        # Length prefix keeps "a|b" reasons from colliding with field breaks.
        f"{len(reason)}:{reason}" if reason is not None else "-",
        actor,
        normalize_timestamp(changed_at),
        prev_hash or GENESIS,
    ]
    data = "|".join(components)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
