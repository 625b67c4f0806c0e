# quota_cache/simulator.py
import asyncio
from typing import Any, Callable, Optional

import pandas as pd

from .cache import QuotaCache


def plain_value(value: Any) -> Any:
    """Turn numpy scalars and missing markers from a DataFrame into JSON values."""
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None
    if hasattr(value, "item"):
        return value.item()
    return value


class CacheSim:
    """
    Replays a trace DataFrame through a QuotaCache.

    ``cache_ctor(clock)`` builds the cache; the clock it receives reports the
    timestamp of the row being replayed, so recency follows trace time.
    """
    def __init__(self, cache_ctor: Optional[Callable[..., QuotaCache]] = None):
        cache_ctor   = cache_ctor or (lambda clock: QuotaCache.in_memory(clock=clock))
        self.now     = 0
        self.cache   = cache_ctor(lambda: self.now)
        self.evicted = 0

    # ----------------------------------------------------------
    async def step(self, row, key_func: Callable = None, ts_attr="ts"):
        """
        Apply one trace row.
        Returns True/False for a read hit/miss and None for a write.
        """
        key_func = key_func or (lambda r: r.key)
        self.now = int(getattr(row, ts_attr))
        ns  = self.cache[row.namespace]
        key = key_func(row)

        if row.op == "read":
            found = await ns.lookup([key])
            return key in found

        result = await ns.merge_and_prune({key: plain_value(row.value)})
        self.evicted += len(result.evicted_keys)
        return None

    async def areplay(self, df: pd.DataFrame, key_func: Callable = None,
                      ts_attr="ts") -> float:
        hits = reads = 0
        for row in df.itertuples(index=False):
            hit = await self.step(row, key_func, ts_attr)
            if hit is None:
                continue
            reads += 1
            if hit:
                hits += 1
        return hits / reads if reads else 0.0

    def replay(self, df: pd.DataFrame, key_func: Callable = None, ts_attr="ts") -> float:
        """Read hit ratio over the trace."""
        return asyncio.run(self.areplay(df, key_func, ts_attr))
