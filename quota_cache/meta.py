# quota_cache/meta.py
"""
Recency tracking ("meta") for a namespace.

Persisted shape: ``{"lastUsed": {key: ms_since_epoch}}``. Every helper
returns a fresh dict and never mutates its input.
"""
import time
from collections.abc import Iterable, Mapping
from typing import Any, Dict, Optional

LAST_USED  = "lastUsed"
NEVER_USED = 0          # timestamp given to keys that were never touched


def now_ms() -> int:
    return int(time.time() * 1000)


def is_timestamp(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def ensure_meta(meta: Any) -> Dict[str, Any]:
    """Return a structurally valid meta dict for any input, never raising."""
    normalized = dict(meta) if isinstance(meta, Mapping) else {}
    last_used = normalized.get(LAST_USED)
    normalized[LAST_USED] = dict(last_used) if isinstance(last_used, Mapping) else {}
    return normalized


def normalize_meta(entries: Optional[Mapping[str, Any]], meta: Any) -> Dict[str, Any]:
    """
    Make ``lastUsed`` cover exactly the keys of ``entries``.

    Orphaned timestamps are dropped; keys without a usable timestamp get
    ``NEVER_USED`` so the persisted ``lastUsed`` keys always match the entry
    keys. Eviction order is taken from the un-backfilled meta, where such
    keys rank below every real timestamp (see ``last_used_of``).
    """
    normalized = ensure_meta(meta)
    last_used = normalized[LAST_USED]
    keys = set(entries or {})
    normalized[LAST_USED] = {
        key: (last_used[key] if is_timestamp(last_used.get(key)) else NEVER_USED)
        for key in keys
    }
    return normalized


def touch_meta(meta: Any, keys: Iterable[str], now: Optional[int] = None) -> Dict[str, Any]:
    """
    Stamp ``keys`` with ``now`` (current wall clock in ms when omitted).

    Anything that is not a key collection, and empty keys, leave meta as is.
    """
    normalized = ensure_meta(meta)
    if isinstance(keys, (str, bytes)) or not isinstance(keys, Iterable):
        return normalized
    stamp = now_ms() if now is None else now
    for key in keys:
        if key:
            normalized[LAST_USED][key] = stamp
    return normalized


def last_used_of(meta: Mapping[str, Any], key: str) -> float:
    """Timestamp used for ordering; missing or malformed counts as oldest."""
    value = meta.get(LAST_USED, {}).get(key)
    return value if is_timestamp(value) else float("-inf")
