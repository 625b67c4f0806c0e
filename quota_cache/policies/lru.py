# quota_cache/policies/lru.py
from typing import Any, Dict, List, Mapping, Optional

from ..meta import LAST_USED, ensure_meta, last_used_of, normalize_meta
from ..sizing import estimate_bytes
from .base import UNBOUNDED, BasePolicy, Budget, PruneResult


def eviction_order(entries: Mapping[str, Any], meta: Mapping[str, Any]) -> List[str]:
    """
    Keys oldest first. Equal timestamps fall back to lexicographic key order
    so the same input always evicts the same keys.
    """
    return sorted(entries, key=lambda k: (last_used_of(meta, k), k))


def prune(entries: Optional[Mapping[str, Any]], meta: Any,
          budget: Optional[Budget] = None) -> PruneResult:
    """
    Evict least-recently-used entries until ``budget`` holds on both the
    entry count and the estimated byte size.

    Inputs are not modified. When every candidate is gone the remainder is
    returned as is; that only happens if one entry alone exceeds the byte cap.
    """
    budget  = budget or UNBOUNDED
    working: Dict[str, Any] = dict(entries) if isinstance(entries, Mapping) else {}
    # order from the stored stamps; backfilled NEVER_USED would rank above negative ones
    raw     = ensure_meta(meta)
    meta    = normalize_meta(working, raw)

    current_bytes = estimate_bytes(working)
    if budget.allows(len(working), current_bytes):
        return PruneResult(working, meta, [])

    evicted: List[str] = []
    for key in eviction_order(working, raw):
        if budget.allows(len(working), current_bytes):
            break
        del working[key]
        meta[LAST_USED].pop(key, None)
        evicted.append(key)
        # one large entry can clear the byte cap before the count cap, and vice versa
        current_bytes = estimate_bytes(working)

    return PruneResult(working, meta, evicted)


class LRUPolicy(BasePolicy):
    """
    Least-Recently-Used pruning against an entry-count and byte budget.
    The budget is swapped with ``resize`` whenever the quota is recomputed.
    """
    def __init__(self, budget: Budget = UNBOUNDED):
        super().__init__(budget)

    # ----------------------------------------------------------
    def prune(self, entries, meta) -> PruneResult:
        return prune(entries, meta, self.budget)
