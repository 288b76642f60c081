"""InMemoryCacheBackend: expiry on read, oldest-entry eviction, prefix deletes."""

import pytest

from opme_core.cache.backend import InMemoryCacheBackend


async def test_expired_entry_is_absent(backend, clock):
    await backend.set("k", "v", 10)
    assert await backend.get("k") == "v"
    clock.advance(10)
    assert await backend.get("k") is None
    assert await backend.count() == 0


async def test_oldest_entry_evicted_when_full(clock):
    store = InMemoryCacheBackend(max_entries=2, clock=clock)
    await store.set("a", "1", 60)
    await store.set("b", "2", 60)
    await store.set("c", "3", 60)
    assert await store.get("a") is None
    assert await store.get("b") == "2"
    assert await store.get("c") == "3"


async def test_rewrite_refreshes_eviction_order(clock):
    store = InMemoryCacheBackend(max_entries=2, clock=clock)
    await store.set("a", "1", 60)
    await store.set("b", "2", 60)
    await store.set("a", "1b", 60)
    await store.set("c", "3", 60)
    assert await store.get("a") == "1b"
    assert await store.get("b") is None


async def test_delete_reports_removed_count(backend):
    await backend.set("k", "v", 60)
    assert await backend.delete("k") == 1
    assert await backend.delete("k") == 0


async def test_delete_prefix(backend):
    for key in ("search:1", "search:2", "searchx", "product:1"):
        await backend.set(key, "v", 60)
    assert await backend.delete_prefix("search:") == 2
    assert await backend.count() == 2


async def test_clear(backend):
    await backend.set("k", "v", 60)
    await backend.clear()
    assert await backend.count() == 0


def test_max_entries_must_be_positive():
    with pytest.raises(ValueError):
        InMemoryCacheBackend(max_entries=0)
