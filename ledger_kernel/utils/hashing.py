"""
Deterministic hashing utilities.

Saved bills carry a fingerprint of their frozen figures so later reads can
prove nothing drifted.  All hashing goes through the canonical JSON form
below: sorted keys, no whitespace, and Decimals normalized to strings.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Decimal):
        # Normalize so 10.50 and 10.5 hash identically
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """Convert data to its canonical JSON string."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """
    Compute SHA-256 hash of a payload.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_bill_figures(items: list[dict], summary: dict, rates: dict) -> str:
    """
    Fingerprint the frozen figures of a saved bill.

    Items are ordered by BOQ item id so the hash does not depend on the
    order lines were entered in.
    """
    sorted_items = sorted(items, key=lambda x: x.get("boqItemId", ""))
    return hash_payload({"items": sorted_items, "summary": summary, "rates": rates})
