# quota_cache/metrics.py
from .simulator import CacheSim
from .sizing import estimate_bytes


async def replay_with_metrics(df, cache_ctor=None, key_func=lambda r: r.key):
    sim = CacheSim(cache_ctor)
    hits = reads = writes = 0
    evicted_by_ns = {}

    for row in df.itertuples(index=False):
        before = sim.evicted
        hit = await sim.step(row, key_func)
        if hit is None:
            writes += 1
            evicted_by_ns[row.namespace] = (evicted_by_ns.get(row.namespace, 0)
                                            + sim.evicted - before)
            continue
        reads += 1
        if hit:
            hits += 1

    namespaces = {}
    budgets = await sim.cache.budgets()
    for kind in sim.cache.kinds:
        entries, _ = await sim.cache[kind].load()
        namespaces[kind] = {
            "entries":   len(entries),
            "bytes":     estimate_bytes(entries),
            "evicted":   evicted_by_ns.get(kind, 0),
            "max_bytes": budgets[kind].max_bytes,
        }

    return {
        "hit_ratio":  hits / reads if reads else 0.0,
        "reads":      reads,
        "writes":     writes,
        "evicted":    sim.evicted,
        "namespaces": namespaces,
    }
