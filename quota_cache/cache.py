"""Process-wide cache object tying namespaces, quota probe and storage together."""

from typing import Callable, Iterable, Mapping, Sequence

import structlog

from quota_cache.config import Settings
from quota_cache.exceptions import UnknownNamespaceError
from quota_cache.gateway import (
    PersistenceGateway,
    StorageArea,
    StorageEstimateProvider,
    default_areas,
)
from quota_cache.namespace import CacheNamespace
from quota_cache.policies import Budget
from quota_cache.quota import QuotaProbe, QuotaSource, default_sources

logger = structlog.get_logger()


class QuotaCache:
    """Built once per process; owns one ``CacheNamespace`` per configured kind.

    Budgets are discovered on first use (or by ``initialize()`` at startup)
    and kept for the lifetime of the object.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        settings: Settings | None = None,
        clock: Callable[[], int] | None = None,
        sources: Sequence[QuotaSource] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.gateway = gateway
        if sources is None:
            sources = default_sources(self.settings.trusted_context)
        self.probe = QuotaProbe(gateway, self.settings.namespaces, sources)
        self._namespaces = {
            kind: CacheNamespace(kind, config, gateway, self.probe, clock=clock)
            for kind, config in self.settings.namespaces.items()
        }

    @classmethod
    def in_memory(
        cls,
        settings: Settings | None = None,
        areas: Mapping[str, StorageArea] | Iterable[StorageArea] | None = None,
        estimate: StorageEstimateProvider | None = None,
        clock: Callable[[], int] | None = None,
    ) -> "QuotaCache":
        """Cache over in-memory storage areas (host default quotas unless given)."""
        gateway = PersistenceGateway(areas if areas is not None else default_areas(), estimate)
        return cls(gateway, settings=settings, clock=clock)

    @property
    def kinds(self) -> list[str]:
        return list(self._namespaces)

    def namespace(self, kind: str) -> CacheNamespace:
        try:
            return self._namespaces[kind]
        except KeyError:
            raise UnknownNamespaceError(kind) from None

    __getitem__ = namespace

    async def initialize(self) -> dict[str, Budget]:
        """Discover budgets now instead of on the first write."""
        budgets = await self.probe.compute_budgets()
        logger.info(
            "Cache budgets initialized",
            budgets={kind: budget.to_dict() for kind, budget in budgets.items()},
        )
        return budgets

    async def budgets(self) -> dict[str, Budget]:
        return await self.probe.compute_budgets()

    async def join(self) -> None:
        """Wait for all queued namespace operations."""
        for ns in self._namespaces.values():
            await ns.join()
