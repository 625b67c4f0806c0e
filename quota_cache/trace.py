# quota_cache/trace.py
"""
Access traces for replaying against a QuotaCache.

A trace is a DataFrame with one row per operation:
    ts         int, ms since epoch (used as the recency clock)
    namespace  namespace kind, e.g. "savedPoints"
    op         "write" (merge_and_prune) or "read" (lookup)
    key        entry key
    value      value written; ignored for reads
"""
import pathlib

import numpy as np
import pandas as pd

COLUMNS = ["ts", "namespace", "op", "key", "value"]
OPS     = ("write", "read")


def normalize_trace(df: pd.DataFrame) -> pd.DataFrame:
    missing = {"namespace", "key"} - set(df.columns)
    if missing:
        raise ValueError(f"trace is missing columns: {sorted(missing)}")

    df = df.copy()
    if "op" not in df.columns:
        df["op"] = "write"
    if "value" not in df.columns:
        df["value"] = None
    if "ts" not in df.columns:
        df["ts"] = np.arange(len(df), dtype="int64")

    # datetimes -> ms since epoch
    if pd.api.types.is_datetime64_any_dtype(df["ts"]):
        df["ts"] = df["ts"].dt.as_unit("ms").astype("int64")
    df["ts"]  = pd.to_numeric(df["ts"]).astype("int64")
    df["key"] = df["key"].astype(str)
    df["op"]  = df["op"].astype(str).str.lower()

    bad = sorted(set(df["op"]) - set(OPS))
    if bad:
        raise ValueError(f"unknown trace ops: {bad}")

    return df.sort_values("ts", kind="stable").reset_index(drop=True)[COLUMNS]


def load_trace(path) -> pd.DataFrame:
    """Read a CSV or Parquet trace file."""
    path = pathlib.Path(path)
    if path.suffix == ".parquet":
        df = pd.read_parquet(path)
    else:
        df = pd.read_csv(path)
    return normalize_trace(df)


def synthetic_trace(n: int, n_keys: int = 500, namespace: str = "savedPoints",
                    read_ratio: float = 0.5, zipf_a: float = 1.2,
                    value_size: int = 16, seed: int = 0,
                    start_ms: int = 0, step_ms: int = 1000) -> pd.DataFrame:
    """
    Zipf-distributed key popularity: a few hot keys, a long cold tail.
    """
    rng   = np.random.default_rng(seed)
    ranks = rng.zipf(zipf_a, size=n)
    keys  = (ranks - 1) % n_keys
    ops   = np.where(rng.random(n) < read_ratio, "read", "write")

    df = pd.DataFrame({
        "ts":        start_ms + np.arange(n, dtype="int64") * step_ms,
        "namespace": namespace,
        "op":        ops,
        "key":       [f"k{k}" for k in keys],
        "value":     [f"{k}:" + "x" * value_size for k in keys],
    })
    return normalize_trace(df)
