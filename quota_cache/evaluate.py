# quota_cache/evaluate.py
"""
Replay a trace under several storage quotas and tabulate the outcome.

    python -m quota_cache.evaluate trace.csv --area sync --quota 20000 50000 102400
"""
import argparse
import asyncio
from pathlib import Path

import pandas as pd
from tqdm import tqdm

from .cache import QuotaCache
from .config import Settings
from .gateway import default_areas
from .metrics import replay_with_metrics
from .trace import load_trace
from .utils.logging import configure_logging

RESULT_COLUMNS = ["area", "quota_bytes", "namespace", "hit_ratio",
                  "max_bytes", "entries", "bytes", "evicted"]


def quota_ctor(area: str, quota_bytes: int, settings: Settings = None):
    """Cache factory whose ``area`` has ``quota_bytes`` in total."""
    def ctor(clock):
        areas = default_areas()
        areas[area].quota_bytes = quota_bytes
        return QuotaCache.in_memory(settings=settings, areas=areas, clock=clock)
    return ctor


def compare_quotas(df: pd.DataFrame, quotas, area: str = "sync",
                   settings: Settings = None, progress: bool = False) -> pd.DataFrame:
    rows = []
    for quota in tqdm(list(quotas), desc=f"{area} quotas", disable=not progress):
        m = asyncio.run(replay_with_metrics(df, quota_ctor(area, quota, settings)))
        for kind, ns in m["namespaces"].items():
            rows.append((area, quota, kind, m["hit_ratio"], ns["max_bytes"],
                         ns["entries"], ns["bytes"], ns["evicted"]))
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("trace", type=Path, help="CSV or Parquet trace")
    parser.add_argument("--area", default="sync", choices=["sync", "local"])
    parser.add_argument("--quota", type=int, nargs="+", required=True,
                        help="total area quotas in bytes")
    parser.add_argument("--out", type=Path, default=None, help="write results CSV here")
    args = parser.parse_args(argv)
    configure_logging(Settings())

    res = compare_quotas(load_trace(args.trace), args.quota, area=args.area, progress=True)
    if args.out:
        res.to_csv(args.out, index=False)
    print(res.to_string(index=False))
    return res


if __name__ == "__main__":
    main()
