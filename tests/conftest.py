"""Shared test fixtures for quota_cache."""

import pytest

from quota_cache.cache import QuotaCache
from quota_cache.config import NamespaceConfig, Settings
from quota_cache.gateway import MemoryStorageArea, PersistenceGateway


class FakeClock:
    """Settable millisecond clock."""

    def __init__(self, now: int = 1_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def small_settings() -> Settings:
    """Two namespaces with tight static budgets."""
    return Settings(
        namespaces={
            "savedPoints": NamespaceConfig(
                storage_key="savedPoints",
                area="sync",
                max_entries=2,
                fallback_max_bytes=10_000,
                allocation_fraction=0.8,
                cap_to_item_quota=True,
            ),
            "studentNames": NamespaceConfig(
                storage_key="studentNames",
                area="local",
                max_entries=3,
                fallback_max_bytes=10_000,
                allocation_fraction=0.6,
                allow_estimate_fallback=True,
            ),
        },
        log_format="console",
    )


@pytest.fixture
def quota_less_areas() -> dict[str, MemoryStorageArea]:
    """Areas without quota APIs, so budgets come from static fallbacks."""
    return {
        "sync": MemoryStorageArea("sync"),
        "local": MemoryStorageArea("local"),
    }


@pytest.fixture
def gateway(quota_less_areas) -> PersistenceGateway:
    return PersistenceGateway(quota_less_areas)


@pytest.fixture
def cache(gateway, small_settings, clock) -> QuotaCache:
    return QuotaCache(gateway, settings=small_settings, clock=clock)
