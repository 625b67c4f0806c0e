from .base import UNBOUNDED, BasePolicy, Budget, PruneResult
from .lru import LRUPolicy, eviction_order, prune

__all__ = [
    "UNBOUNDED",
    "BasePolicy",
    "Budget",
    "LRUPolicy",
    "PruneResult",
    "eviction_order",
    "prune",
]
