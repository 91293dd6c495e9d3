from datetime import date, datetime
from decimal import Decimal
from typing import Any, FrozenSet, Optional, Set

BLOCK_LIST: FrozenSet[str] = frozenset(
    {"links", "etag", "annex", "changed_by", "created_by", "changed_at", "parent_uri"}
)

# Largest integer a JSON consumer can hold without losing precision.
MAX_SAFE_INTEGER = 2**53 - 1


def normalize_scalar(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return value if abs(value) <= MAX_SAFE_INTEGER else str(value)
    if isinstance(value, (str, float)):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def redact(value: Any, block_list: FrozenSet[str] = BLOCK_LIST, _seen: Optional[Set[int]] = None) -> Any:
    """Return a copy of ``value`` without block-listed keys at any depth.

    Mappings lose every key found in ``block_list``, sequences are copied
    item by item and scalars go through :func:`normalize_scalar`. A value
    that contains itself raises ``ValueError``.
    """
    if isinstance(value, (dict, list, tuple)):
        seen = _seen if _seen is not None else set()
        if id(value) in seen:
            raise ValueError("Circular reference detected")
        seen.add(id(value))
        try:
            if isinstance(value, dict):
                return {
                    str(key): redact(item, block_list, seen)
                    for key, item in value.items()
                    if key not in block_list
                }
            return [redact(item, block_list, seen) for item in value]
        finally:
            seen.discard(id(value))
    return normalize_scalar(value)
