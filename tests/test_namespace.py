"""Tests for CacheNamespace operations."""

import asyncio

from structlog.testing import capture_logs

from quota_cache.config import NamespaceConfig, Settings
from quota_cache.gateway import JsonFileStorageArea, MemoryStorageArea, PersistenceGateway
from quota_cache.meta import LAST_USED
from quota_cache.namespace import EntryChange, diff_entries
from quota_cache.policies import Budget
from quota_cache.cache import QuotaCache


async def stored(gateway, area, key, default=None):
    return await gateway.read(area, key, default)


class TestDiffEntries:
    def test_added_removed_and_changed(self):
        changes = diff_entries({"a": 1, "b": 2, "c": 3}, {"a": 1, "b": 5, "d": 4})
        assert changes == {
            "b": EntryChange(2, 5),
            "c": EntryChange(3, None),
            "d": EntryChange(None, 4),
        }

    def test_identical_maps(self):
        assert diff_entries({"a": [1]}, {"a": [1]}) == {}
        assert diff_entries(None, None) == {}

    def test_key_added_with_none_value(self):
        assert diff_entries({}, {"a": None}) == {"a": EntryChange(None, None)}


class TestMergeAndPrune:
    async def test_first_write_to_empty_namespace(self, cache, gateway, clock):
        ns = cache["savedPoints"]
        result = await ns.merge_and_prune({"q1": 4})

        assert result.entries == {"q1": 4}
        assert result.meta == {"lastUsed": {"q1": clock.now}}
        assert result.evicted_keys == []
        assert result.persisted
        assert result.changes == {"q1": EntryChange(None, 4)}
        assert await stored(gateway, "sync", "savedPoints") == {"q1": 4}
        assert await stored(gateway, "sync", "savedPointsMeta") == {"lastUsed": {"q1": clock.now}}

    async def test_evicts_least_recently_used(self, cache, gateway, clock):
        ns = cache["savedPoints"]
        clock.now = 10
        await ns.merge_and_prune({"a": 1})
        clock.now = 20
        await ns.merge_and_prune({"b": 2})
        clock.now = 30
        with capture_logs() as logs:
            result = await ns.merge_and_prune({"c": 3})

        assert result.evicted_keys == ["a"]
        assert result.entries == {"b": 2, "c": 3}
        assert result.meta[LAST_USED] == {"b": 20, "c": 30}
        assert result.changes == {"a": EntryChange(1, None), "c": EntryChange(None, 3)}
        assert await stored(gateway, "sync", "savedPoints") == {"b": 2, "c": 3}

        pruned = [log for log in logs if log["event"] == "Pruned namespace entries"]
        assert pruned[0]["count"] == 1
        assert pruned[0]["namespace"] == "savedPoints"

    async def test_new_values_win(self, cache, clock):
        ns = cache["savedPoints"]
        await ns.merge_and_prune({"a": 1})
        clock.advance()
        result = await ns.merge_and_prune({"a": 9})
        assert result.entries == {"a": 9}
        assert result.meta[LAST_USED] == {"a": clock.now}

    async def test_only_merged_keys_are_touched(self, cache, clock):
        ns = cache["studentNames"]
        clock.now = 1
        await ns.merge_and_prune({"a": "Ada", "b": "Bob"})
        clock.now = 2
        result = await ns.merge_and_prune({"c": "Cy"})
        assert result.meta[LAST_USED] == {"a": 1, "b": 1, "c": 2}

    async def test_empty_merge_reprunes_stored_map(self, gateway, small_settings, clock):
        await gateway.write("sync", {
            "savedPoints": {"a": 1, "b": 2, "c": 3},
            "savedPointsMeta": {"lastUsed": {"a": 3, "b": 2, "c": 1, "stale": 9}},
        })
        cache = QuotaCache(gateway, settings=small_settings, clock=clock)

        result = await cache["savedPoints"].merge_and_prune({})
        assert result.evicted_keys == ["c"]
        assert result.meta == {"lastUsed": {"a": 3, "b": 2}}

    async def test_byte_budget(self, gateway, small_settings, clock):
        small_settings.namespaces["savedPoints"].max_entries = 100
        small_settings.namespaces["savedPoints"].fallback_max_bytes = 30
        ns = QuotaCache(gateway, settings=small_settings, clock=clock)["savedPoints"]

        for key, value in (("a", 1), ("b", 2), ("c", 3)):
            clock.advance()
            result = await ns.merge_and_prune({key: value})

        assert result.evicted_keys == ["a"]
        assert result.entries == {"b": 2, "c": 3}

    async def test_write_failure_keeps_in_memory_result(self, small_settings, clock):
        area = MemoryStorageArea("sync", quota_bytes_per_item=5)
        cache = QuotaCache(PersistenceGateway([area, MemoryStorageArea("local")]),
                           settings=small_settings, clock=clock)

        with capture_logs() as logs:
            result = await cache["savedPoints"].merge_and_prune({"q": "a long value"})

        assert result.persisted is False
        assert result.entries == {"q": "a long value"}
        events = [log["event"] for log in logs]
        assert "Storage write failed" in events
        assert "Failed saving namespace" in events

    async def test_concurrent_merges_are_not_lost(self, cache, gateway):
        ns = cache["studentNames"]
        ns.config.max_entries = 100

        await asyncio.gather(*(ns.merge_and_prune({f"s{i}": i}) for i in range(20)))

        entries = await stored(gateway, "local", "studentNames")
        assert entries == {f"s{i}": i for i in range(20)}

    async def test_namespaces_sharing_a_file_area(self, tmp_path, clock):
        area = JsonFileStorageArea("local", tmp_path / "local.json")
        settings = Settings(namespaces={
            "one": NamespaceConfig(storage_key="one"),
            "two": NamespaceConfig(storage_key="two"),
        })
        cache = QuotaCache(PersistenceGateway([area]), settings=settings, clock=clock)

        await asyncio.gather(
            cache["one"].merge_and_prune({"a": 1}),
            cache["two"].merge_and_prune({"b": 2}),
        )

        reopened = PersistenceGateway([JsonFileStorageArea("local", tmp_path / "local.json")])
        assert await stored(reopened, "local", "one") == {"a": 1}
        assert await stored(reopened, "local", "two") == {"b": 2}
        assert (await stored(reopened, "local", "twoMeta"))[LAST_USED] == {"b": clock.now}


class TestReplaceAndPrune:
    async def test_replaces_whole_map(self, cache, gateway, clock):
        ns = cache["studentNames"]
        await ns.merge_and_prune({"a": "Ada", "b": "Bob"})
        clock.advance(5)
        result = await ns.replace_and_prune({"b": "Bobby", "c": "Cy"})

        assert result.entries == {"b": "Bobby", "c": "Cy"}
        assert result.meta[LAST_USED] == {"b": clock.now, "c": clock.now}
        assert result.changes == {
            "a": EntryChange("Ada", None),
            "b": EntryChange("Bob", "Bobby"),
            "c": EntryChange(None, "Cy"),
        }
        assert await stored(gateway, "local", "studentNames") == {"b": "Bobby", "c": "Cy"}

    async def test_prunes_oversized_replacement(self, cache):
        result = await cache["studentNames"].replace_and_prune({k: k for k in "abcde"})
        assert len(result.entries) == 3
        assert result.evicted_keys == ["a", "b"]


class TestTouchOnly:
    async def test_updates_recency_without_pruning(self, cache, gateway, clock):
        ns = cache["savedPoints"]
        clock.now = 10
        await ns.merge_and_prune({"a": 1})
        clock.now = 20
        await ns.merge_and_prune({"b": 2})

        clock.now = 30
        meta = await ns.touch_only(["a", "missing"])

        assert meta == {"lastUsed": {"a": 30, "b": 20}}
        assert await stored(gateway, "sync", "savedPointsMeta") == meta
        assert await stored(gateway, "sync", "savedPoints") == {"a": 1, "b": 2}

        clock.now = 40
        result = await ns.merge_and_prune({"c": 3})
        assert result.evicted_keys == ["b"]

    async def test_empty_keys(self, cache):
        assert await cache["savedPoints"].touch_only([]) == {"lastUsed": {}}


class TestLookup:
    async def test_returns_present_values_and_touches_them(self, cache, gateway, clock):
        ns = cache["savedPoints"]
        clock.now = 10
        await ns.merge_and_prune({"a": {"points": 3}})
        clock.now = 20
        await ns.merge_and_prune({"b": {"points": 5}})

        clock.now = 30
        found = await ns.lookup(["a", "zzz"])

        assert found == {"a": {"points": 3}}
        meta = await stored(gateway, "sync", "savedPointsMeta")
        assert meta == {"lastUsed": {"a": 30, "b": 20}}

    async def test_miss_does_not_write(self, cache, gateway):
        assert await cache["savedPoints"].lookup(["nothing"]) == {}
        assert await stored(gateway, "sync", "savedPointsMeta") is None


class TestLoadAndBudget:
    async def test_malformed_stored_state(self, cache, gateway):
        await gateway.write("sync", {"savedPoints": ["not", "a", "map"], "savedPointsMeta": 7})
        entries, meta = await cache["savedPoints"].load()
        assert entries == {}
        assert meta == {"lastUsed": {}}

    async def test_budget_from_static_fallback(self, cache):
        assert await cache["savedPoints"].budget() == Budget(max_entries=2, max_bytes=10_000)
