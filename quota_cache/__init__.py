"""Quota-aware LRU cache namespaces over an async key-value store."""

from quota_cache.cache import QuotaCache
from quota_cache.config import NamespaceConfig, Settings
from quota_cache.exceptions import (
    QuotaCacheError,
    QuotaUnavailable,
    StorageAreaError,
    UnknownNamespaceError,
)
from quota_cache.gateway import (
    DiskUsageEstimate,
    FixedEstimate,
    JsonFileStorageArea,
    MemoryStorageArea,
    PersistenceGateway,
    QuotaEstimate,
)
from quota_cache.meta import ensure_meta, normalize_meta, touch_meta
from quota_cache.namespace import CacheNamespace, EntryChange, WriteResult, diff_entries
from quota_cache.policies import Budget, LRUPolicy, PruneResult, prune
from quota_cache.quota import AreaQuotaApi, QuotaProbe, StaticFallback, StorageEstimateApi
from quota_cache.sizing import estimate_bytes

__all__ = [
    "AreaQuotaApi",
    "Budget",
    "CacheNamespace",
    "DiskUsageEstimate",
    "EntryChange",
    "FixedEstimate",
    "JsonFileStorageArea",
    "LRUPolicy",
    "MemoryStorageArea",
    "NamespaceConfig",
    "PersistenceGateway",
    "PruneResult",
    "QuotaCache",
    "QuotaCacheError",
    "QuotaEstimate",
    "QuotaProbe",
    "QuotaUnavailable",
    "Settings",
    "StaticFallback",
    "StorageAreaError",
    "StorageEstimateApi",
    "UnknownNamespaceError",
    "WriteResult",
    "diff_entries",
    "ensure_meta",
    "estimate_bytes",
    "normalize_meta",
    "prune",
    "touch_meta",
]
