# quota_cache/policies/base.py
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _limit(value) -> float:
    # non-numeric, NaN and infinite limits mean unbounded
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return math.inf
    if math.isnan(value) or math.isinf(value):
        return math.inf
    return value


@dataclass(frozen=True)
class Budget:
    """
    Ceiling a namespace must satisfy after pruning.
    ``None`` on either dimension means unbounded.
    """
    max_entries: Optional[int] = None
    max_bytes:   Optional[int] = None

    @property
    def entry_limit(self) -> float:
        return _limit(self.max_entries)

    @property
    def byte_limit(self) -> float:
        return _limit(self.max_bytes)

    def allows(self, count: int, size: int) -> bool:
        return count <= self.entry_limit and size <= self.byte_limit

    def to_dict(self) -> Dict[str, Optional[int]]:
        return {"maxEntries": self.max_entries, "maxBytes": self.max_bytes}


UNBOUNDED = Budget()


@dataclass
class PruneResult:
    entries:      Dict[str, Any]
    meta:         Dict[str, Any]
    evicted_keys: List[str] = field(default_factory=list)

    @property
    def evicted(self) -> bool:
        return bool(self.evicted_keys)


class BasePolicy:
    def __init__(self, budget: Budget = UNBOUNDED):
        self.budget = budget
    def prune(self, entries, meta) -> PruneResult: ...
    def resize(self, new_budget: Budget):
        self.budget = new_budget
