"""Runtime discovery of per-namespace budgets.

Each namespace kind gets ``Budget(max_entries, max_bytes)``. ``max_entries``
is always the configured ceiling; ``max_bytes`` comes from the first quota
source that applies, in priority order:

1. ``AreaQuotaApi``        free bytes of the backing area (quota minus usage)
2. ``StorageEstimateApi``  OS/browser storage estimate, trusted contexts only
3. ``StaticFallback``      configured constant

A source that applies but fails leaves the static fallback in place.
"""

import asyncio
import math
from typing import Mapping, Sequence

import structlog

from quota_cache.config import NamespaceConfig
from quota_cache.exceptions import QuotaUnavailable
from quota_cache.gateway import PersistenceGateway
from quota_cache.policies import Budget

logger = structlog.get_logger()


def allocate(available: int, config: NamespaceConfig, item_quota: int | None = None) -> int:
    """Fraction of ``available`` bytes for one namespace, capped per item when configured."""
    max_bytes = math.floor(max(available, 0) * config.allocation_fraction)
    if config.cap_to_item_quota and item_quota is not None:
        max_bytes = min(max_bytes, item_quota)
    return max_bytes


class QuotaSource:
    """
    One way of discovering a byte budget.

    ``applies`` is a cheap capability check; ``budget`` performs the host I/O
    and returns ``None`` instead of raising when it cannot finish.
    """

    name = "base"

    def applies(self, config: NamespaceConfig, gateway: PersistenceGateway) -> bool:
        return False

    async def _probe(self, config: NamespaceConfig, gateway: PersistenceGateway) -> Budget:
        raise QuotaUnavailable(self.name)

    async def budget(self, kind: str, config: NamespaceConfig,
                     gateway: PersistenceGateway) -> Budget | None:
        try:
            return await self._probe(config, gateway)
        except QuotaUnavailable as e:
            logger.debug("Quota source unavailable", source=self.name, namespace=kind, reason=str(e))
        except Exception as e:
            logger.warning("Quota probe failed", source=self.name, namespace=kind, error=str(e))
        return None


class StaticFallback(QuotaSource):
    name = "static"

    def applies(self, config, gateway) -> bool:
        return True

    async def _probe(self, config, gateway) -> Budget:
        return Budget(max_entries=config.max_entries, max_bytes=config.fallback_max_bytes)


class AreaQuotaApi(QuotaSource):
    name = "area_quota"

    def applies(self, config, gateway) -> bool:
        area = gateway.area(config.area)
        return isinstance(getattr(area, "quota_bytes", None), int)

    async def _probe(self, config, gateway) -> Budget:
        area = gateway.area(config.area)
        in_use = await gateway.get_bytes_in_use(config.area)
        if in_use is None:
            raise QuotaUnavailable(f"bytes in use unknown for area {config.area!r}")
        available = max(area.quota_bytes - in_use, 0)
        return Budget(
            max_entries=config.max_entries,
            max_bytes=allocate(available, config, area.quota_bytes_per_item),
        )


class StorageEstimateApi(QuotaSource):
    name = "storage_estimate"

    def __init__(self, trusted_context: bool = True) -> None:
        self.trusted_context = trusted_context

    def applies(self, config, gateway) -> bool:
        return (
            self.trusted_context
            and config.allow_estimate_fallback
            and gateway.has_estimate
        )

    async def _probe(self, config, gateway) -> Budget:
        estimate = await gateway.get_quota_estimate()
        if estimate is None:
            raise QuotaUnavailable("storage estimate unavailable")
        area = gateway.area(config.area)
        item_quota = getattr(area, "quota_bytes_per_item", None)
        return Budget(
            max_entries=config.max_entries,
            max_bytes=allocate(estimate.available, config, item_quota),
        )


def default_sources(trusted_context: bool = True) -> list[QuotaSource]:
    return [AreaQuotaApi(), StorageEstimateApi(trusted_context)]


class QuotaProbe:
    """Computes budgets once per process and serves them from cache."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        namespaces: Mapping[str, NamespaceConfig],
        sources: Sequence[QuotaSource] | None = None,
    ) -> None:
        self._gateway = gateway
        self._namespaces = dict(namespaces)
        self._sources = list(sources) if sources is not None else default_sources()
        self._fallback = StaticFallback()
        self._budgets: dict[str, Budget] | None = None
        self._lock = asyncio.Lock()

    @property
    def cached(self) -> bool:
        return self._budgets is not None

    @staticmethod
    def _static(config: NamespaceConfig) -> Budget:
        return Budget(max_entries=config.max_entries, max_bytes=config.fallback_max_bytes)

    def fallback_budgets(self) -> dict[str, Budget]:
        return {kind: self._static(cfg) for kind, cfg in self._namespaces.items()}

    async def _compute(self, kind: str, config: NamespaceConfig) -> Budget:
        # the first applicable source decides; a failed probe keeps the fallback
        source = next(
            (s for s in self._sources if s.applies(config, self._gateway)),
            self._fallback,
        )
        budget = await source.budget(kind, config, self._gateway)
        if budget is None:
            source, budget = self._fallback, self._static(config)
        logger.debug(
            "Budget computed",
            namespace=kind,
            source=source.name,
            max_entries=budget.max_entries,
            max_bytes=budget.max_bytes,
        )
        return budget

    async def compute_budgets(self) -> dict[str, Budget]:
        if self._budgets is not None:
            return dict(self._budgets)
        async with self._lock:
            if self._budgets is None:
                budgets = {}
                for kind, config in self._namespaces.items():
                    budgets[kind] = await self._compute(kind, config)
                self._budgets = budgets
        return dict(self._budgets)

    async def budget_for(self, kind: str) -> Budget:
        budgets = await self.compute_budgets()
        return budgets[kind]

    def invalidate(self) -> None:
        """Drop cached budgets so the next call probes the host again."""
        self._budgets = None
