# quota_cache/sizing.py
import json
from typing import Any, Mapping, Optional


def estimate_bytes(entries: Optional[Mapping[str, Any]]) -> int:
    """
    Approximate stored size of a value map.

    Serializes to compact JSON (sorted keys, so the figure does not depend on
    insertion order) and counts 2 bytes per UTF-16 code unit.
    Returns 0 when the map cannot be serialized.
    """
    try:
        text = json.dumps(entries or {}, sort_keys=True,
                          separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError, OverflowError, RecursionError):
        return 0
    code_units = len(text.encode("utf-16-le")) // 2
    return code_units * 2


def item_bytes(key: str, value: Any) -> int:
    """Bytes one stored item occupies: key length plus its JSON value."""
    try:
        text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError, OverflowError, RecursionError):
        return len(key)
    return len(key) + len(text.encode("utf-8"))
