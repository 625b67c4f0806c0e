"""Persistence gateway over asynchronous key-value storage areas.

A storage area is the host's key-value store (one per backing area, e.g.
``sync`` and ``local``). The gateway wraps the areas so that host errors
become logged warnings instead of exceptions.
"""

import asyncio
import copy
import json
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol

import structlog

from quota_cache.exceptions import StorageAreaError
from quota_cache.sizing import item_bytes

logger = structlog.get_logger()

# Host defaults for the two backing areas
SYNC_QUOTA_BYTES = 102_400
SYNC_QUOTA_BYTES_PER_ITEM = 8_192
LOCAL_QUOTA_BYTES = 10_485_760


class StorageArea(Protocol):
    """Protocol for one backing storage area."""

    name: str
    quota_bytes: int | None
    quota_bytes_per_item: int | None

    async def get(self, defaults: Mapping[str, Any]) -> dict[str, Any]: ...

    async def set(self, items: Mapping[str, Any]) -> None: ...

    async def get_bytes_in_use(self, keys: Iterable[str] | None = None) -> int | None: ...


@dataclass(frozen=True)
class QuotaEstimate:
    """Origin-wide storage estimate: total quota and bytes used."""

    quota: int
    usage: int

    @property
    def available(self) -> int:
        return max(self.quota - self.usage, 0)


class StorageEstimateProvider(Protocol):
    async def estimate(self) -> QuotaEstimate: ...


class MemoryStorageArea:
    """In-process storage area that enforces the host's quota rules."""

    def __init__(
        self,
        name: str,
        quota_bytes: int | None = None,
        quota_bytes_per_item: int | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> None:
        self.name = name
        self.quota_bytes = quota_bytes
        self.quota_bytes_per_item = quota_bytes_per_item
        self._data: dict[str, Any] = copy.deepcopy(dict(data or {}))
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} keys={len(self._data)}>"

    async def _load(self) -> dict[str, Any]:
        return self._data

    async def _store(self, data: dict[str, Any]) -> None:
        self._data = data

    async def get(self, defaults: Mapping[str, Any]) -> dict[str, Any]:
        data = await self._load()
        return {
            key: copy.deepcopy(data[key] if key in data else default)
            for key, default in defaults.items()
        }

    async def set(self, items: Mapping[str, Any]) -> None:
        # whole-document read-modify-write; held so writers of other keys are not lost
        async with self._lock:
            data = dict(await self._load())
            for key, value in items.items():
                size = item_bytes(key, value)
                if self.quota_bytes_per_item is not None and size > self.quota_bytes_per_item:
                    raise StorageAreaError(
                        self.name,
                        f"QUOTA_BYTES_PER_ITEM quota exceeded for {key!r} ({size} bytes)",
                    )
                data[key] = copy.deepcopy(value)

            total = sum(item_bytes(k, v) for k, v in data.items())
            if self.quota_bytes is not None and total > self.quota_bytes:
                raise StorageAreaError(self.name, f"QUOTA_BYTES quota exceeded ({total} bytes)")
            await self._store(data)

    async def get_bytes_in_use(self, keys: Iterable[str] | None = None) -> int | None:
        data = await self._load()
        selected = data.keys() if keys is None else [k for k in keys if k in data]
        return sum(item_bytes(k, data[k]) for k in selected)


class JsonFileStorageArea(MemoryStorageArea):
    """Storage area persisted as a single JSON document on disk."""

    def __init__(
        self,
        name: str,
        path: str | Path,
        quota_bytes: int | None = None,
        quota_bytes_per_item: int | None = None,
    ) -> None:
        super().__init__(name, quota_bytes, quota_bytes_per_item)
        self.path = Path(path)

    def _read_file(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("storage document is not a JSON object")
        return data

    def _write_file(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self.path)

    async def _load(self) -> dict[str, Any]:
        try:
            return await asyncio.to_thread(self._read_file)
        except (OSError, ValueError) as e:
            raise StorageAreaError(self.name, f"failed to read {self.path}: {e}") from e

    async def _store(self, data: dict[str, Any]) -> None:
        try:
            await asyncio.to_thread(self._write_file, data)
        except (OSError, TypeError, ValueError) as e:
            raise StorageAreaError(self.name, f"failed to write {self.path}: {e}") from e


class DiskUsageEstimate:
    """OS-level estimate from the filesystem holding ``path``."""

    def __init__(self, path: str | Path = ".") -> None:
        self.path = Path(path)

    async def estimate(self) -> QuotaEstimate:
        usage = await asyncio.to_thread(shutil.disk_usage, self.path)
        return QuotaEstimate(quota=usage.total, usage=usage.used)


class FixedEstimate:
    """Static estimate, for simulations and tests."""

    def __init__(self, quota: int, usage: int = 0) -> None:
        self._estimate = QuotaEstimate(quota=quota, usage=usage)

    async def estimate(self) -> QuotaEstimate:
        return self._estimate


def default_areas() -> dict[str, MemoryStorageArea]:
    """In-memory ``sync`` and ``local`` areas with the host's default quotas."""
    return {
        "sync": MemoryStorageArea("sync", SYNC_QUOTA_BYTES, SYNC_QUOTA_BYTES_PER_ITEM),
        "local": MemoryStorageArea("local", LOCAL_QUOTA_BYTES),
    }


class PersistenceGateway:
    """Best-effort access to the storage areas.

    Reads resolve with the supplied defaults and writes report ``False`` when
    the area fails; neither raises into the caller's flow.
    """

    def __init__(
        self,
        areas: Mapping[str, StorageArea] | Iterable[StorageArea],
        estimate: StorageEstimateProvider | None = None,
    ) -> None:
        if isinstance(areas, Mapping):
            self._areas = dict(areas)
        else:
            self._areas = {area.name: area for area in areas}
        self._estimate = estimate

    def area(self, name: str) -> StorageArea | None:
        return self._areas.get(name)

    @property
    def has_estimate(self) -> bool:
        return self._estimate is not None

    async def read_many(self, area: str, defaults: Mapping[str, Any]) -> dict[str, Any]:
        store = self._areas.get(area)
        if store is None:
            logger.warning("Storage area unavailable, using defaults", area=area)
            return copy.deepcopy(dict(defaults))
        try:
            return await store.get(defaults)
        except Exception as e:
            logger.warning("Storage read failed", area=area, keys=list(defaults), error=str(e))
            return copy.deepcopy(dict(defaults))

    async def read(self, area: str, key: str, default: Any = None) -> Any:
        data = await self.read_many(area, {key: default})
        return data.get(key, default)

    async def write(self, area: str, items: Mapping[str, Any]) -> bool:
        store = self._areas.get(area)
        if store is None:
            logger.warning("Storage area unavailable, write skipped", area=area)
            return False
        try:
            await store.set(items)
        except Exception as e:
            logger.warning("Storage write failed", area=area, keys=list(items), error=str(e))
            return False
        return True

    async def get_bytes_in_use(self, area: str) -> int | None:
        store = self._areas.get(area)
        if store is None:
            return None
        try:
            usage = await store.get_bytes_in_use(None)
        except Exception as e:
            logger.warning("Bytes-in-use probe failed", area=area, error=str(e))
            return None
        if isinstance(usage, bool) or not isinstance(usage, int):
            return None
        return usage

    async def get_quota_estimate(self) -> QuotaEstimate | None:
        if self._estimate is None:
            return None
        try:
            return await self._estimate.estimate()
        except Exception as e:
            logger.warning("Storage estimate failed", error=str(e))
            return None
