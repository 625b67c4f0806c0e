# quota_cache/namespace.py
import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import structlog

from .config import NamespaceConfig
from .gateway import PersistenceGateway
from .meta import LAST_USED, ensure_meta, normalize_meta, now_ms, touch_meta
from .policies import BasePolicy, Budget, LRUPolicy
from .serial_queue import SerialQueue
from .quota import QuotaProbe

logger = structlog.get_logger()


@dataclass(frozen=True)
class EntryChange:
    """Value of one key before and after a write; ``None`` means absent."""
    old: Any
    new: Any


def diff_entries(old: Optional[Mapping[str, Any]],
                 new: Optional[Mapping[str, Any]]) -> Dict[str, EntryChange]:
    """Keys added, removed or changed between two maps."""
    old, new = old or {}, new or {}
    changes = {}
    for key in set(old) | set(new):
        before, after = old.get(key), new.get(key)
        if before != after or (key in old) != (key in new):
            changes[key] = EntryChange(before, after)
    return changes


def _key_list(keys) -> List[str]:
    if keys is None or isinstance(keys, (str, bytes)):
        return []
    return list(keys)


@dataclass
class WriteResult:
    entries:      Dict[str, Any]
    meta:         Dict[str, Any]
    evicted_keys: List[str] = field(default_factory=list)
    changes:      Dict[str, EntryChange] = field(default_factory=dict)
    persisted:    bool = True


class CacheNamespace:
    """
    One independently budgeted key/value cache.

    Parameters
    ----------
    kind : str
        Namespace name, e.g. ``"savedPoints"``.
    config : NamespaceConfig
        Store keys, backing area and budget settings.
    gateway : PersistenceGateway
        Async access to the backing storage area.
    probe : QuotaProbe
        Source of the current ``Budget`` for ``kind``.
    clock : callable, optional
        Returns "now" in ms since epoch; used for recency stamps.
    policy : BasePolicy, optional
        Eviction policy, LRU by default.

    Every operation reads the stored state, changes it and writes it back
    through a per-namespace FIFO queue, so calls made in this process never
    overwrite each other.
    """

    def __init__(self, kind: str, config: NamespaceConfig,
                 gateway: PersistenceGateway, probe: QuotaProbe,
                 clock: Optional[Callable[[], int]] = None,
                 policy: Optional[BasePolicy] = None):
        self.kind     = kind
        self.config   = config
        self.gateway  = gateway
        self.probe    = probe
        self.clock    = clock or now_ms
        self.policy   = policy or LRUPolicy()
        self._queue   = SerialQueue(kind)

    def __repr__(self):
        return f"<CacheNamespace {self.kind!r} area={self.config.area!r}>"

    @property
    def storage_key(self) -> str:
        return self.config.storage_key

    @property
    def meta_key(self) -> str:
        return self.config.meta_key

    # ----------------------------------------------------------
    async def budget(self) -> Budget:
        return await self.probe.budget_for(self.kind)

    async def load(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Stored ``(entries, meta)``, empty on first use or read failure."""
        data = await self.gateway.read_many(self.config.area, {
            self.storage_key: {},
            self.meta_key: {LAST_USED: {}},
        })
        entries = data.get(self.storage_key)
        if not isinstance(entries, Mapping):
            entries = {}
        return dict(entries), ensure_meta(data.get(self.meta_key))

    # ----------------------------------------------------------
    async def merge_and_prune(self, new_entries: Mapping[str, Any]) -> WriteResult:
        """
        Merge ``new_entries`` over the stored map (new values win), mark
        their keys as used now, prune against the current budget and persist.
        An empty ``new_entries`` just re-prunes what is stored.
        """
        new_entries = dict(new_entries or {})

        async def job():
            current, meta = await self.load()
            merged = {**current, **new_entries}
            meta = touch_meta(meta, list(new_entries), now=self.clock())
            return await self._prune_and_write(current, merged, meta)

        return await self._queue.submit(job)

    async def replace_and_prune(self, entries: Mapping[str, Any]) -> WriteResult:
        """Store ``entries`` as the whole map; all of its keys count as used now."""
        entries = dict(entries or {})

        async def job():
            current, meta = await self.load()
            meta = touch_meta(meta, list(entries), now=self.clock())
            return await self._prune_and_write(current, entries, meta)

        return await self._queue.submit(job)

    async def touch_only(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Mark existing ``keys`` as used now without adding entries or pruning."""
        keys = _key_list(keys)

        async def job():
            entries, meta = await self.load()
            meta = normalize_meta(entries, touch_meta(meta, keys, now=self.clock()))
            if not await self.gateway.write(self.config.area, {self.meta_key: meta}):
                logger.warning("Failed touching namespace", namespace=self.kind, keys=len(keys))
            return meta

        return await self._queue.submit(job)

    async def lookup(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Stored values for the present ``keys``; those keys count as used."""
        keys = _key_list(keys)

        async def job():
            entries, meta = await self.load()
            found = {k: entries[k] for k in keys if k in entries}
            if found:
                meta = normalize_meta(entries, touch_meta(meta, list(found), now=self.clock()))
                if not await self.gateway.write(self.config.area, {self.meta_key: meta}):
                    logger.warning("Failed touching namespace", namespace=self.kind, keys=len(found))
            return copy.deepcopy(found)

        return await self._queue.submit(job)

    async def join(self) -> None:
        await self._queue.join()

    # ----------------------------------------------------------
    async def _prune_and_write(self, previous, entries, meta) -> WriteResult:
        self.policy.resize(await self.budget())
        pruned = self.policy.prune(entries, meta)

        persisted = await self.gateway.write(self.config.area, {
            self.storage_key: pruned.entries,
            self.meta_key: pruned.meta,
        })
        if not persisted:
            logger.warning("Failed saving namespace", namespace=self.kind)
        if pruned.evicted_keys:
            logger.warning(
                "Pruned namespace entries",
                namespace=self.kind,
                count=len(pruned.evicted_keys),
                max_entries=self.policy.budget.max_entries,
                max_bytes=self.policy.budget.max_bytes,
            )

        return WriteResult(
            entries=pruned.entries,
            meta=pruned.meta,
            evicted_keys=pruned.evicted_keys,
            changes=diff_entries(previous, pruned.entries),
            persisted=persisted,
        )
