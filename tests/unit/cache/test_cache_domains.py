"""Embedding, search and dashboard helpers over CacheLayer."""

from opme_core.cache.domains import DashboardCache, EmbeddingCache, SearchCache
from opme_core.cache.models import MISS


async def test_embedding_get_or_generate_generates_once(cache):
    embeddings = EmbeddingCache(cache)
    calls = []

    async def generate(text):
        calls.append(text)
        return [0.1, 0.2, 0.3]

    assert await embeddings.get_or_generate("stent 3mm", generate) == [0.1, 0.2, 0.3]
    assert await embeddings.get_or_generate("stent 3mm", generate) == [0.1, 0.2, 0.3]
    assert calls == ["stent 3mm"]


async def test_embedding_key_depends_on_model(cache):
    a = EmbeddingCache(cache, model="model-a")
    b = EmbeddingCache(cache, model="model-b")
    assert a.key("text") != b.key("text")
    assert a.key("text").startswith("embedding:")
    await a.set("text", [1.0])
    assert await b.get("text") is None


async def test_embedding_uses_week_long_ttl(cache, clock):
    embeddings = EmbeddingCache(cache)
    await embeddings.set("text", [1.0])
    clock.advance(86400 * 7 - 1)
    assert await embeddings.get("text") == [1.0]


def test_search_key_normalizes_query_and_filters(cache):
    search = SearchCache(cache)
    assert search.key("  Stent   Coronario ") == search.key("stent coronario")
    assert search.key("q", {"a": 1, "b": 2}) == search.key("q", {"b": 2, "a": 1})
    assert search.key("q", {"a": 1}) != search.key("q", {"a": 2})


async def test_search_get_or_search_and_invalidate(cache):
    search = SearchCache(cache)
    calls = []

    async def run(query, filters):
        calls.append((query, filters))
        return [{"id": "p1"}, {"id": "p2"}]

    assert await search.get_or_search("stent", run, {"brand": "x"}) == [{"id": "p1"}, {"id": "p2"}]
    assert await search.get_or_search("stent", run, {"brand": "x"}) == [{"id": "p1"}, {"id": "p2"}]
    assert len(calls) == 1

    cached = await search.get("stent", {"brand": "x"})
    assert cached["total_count"] == 2

    assert await search.invalidate() == 1
    assert await search.get("stent", {"brand": "x"}) is None


async def test_search_results_expire_after_five_minutes(cache, clock):
    search = SearchCache(cache)
    await search.set("stent", [1], 1)
    clock.advance(300)
    assert await search.get("stent") is None


async def test_dashboard_kpis_and_stats(cache, clock):
    dashboard = DashboardCache(cache)
    await dashboard.set_kpis({"monthlyRevenue": 125000.0})
    await dashboard.set_stats("surgeries", {"count": 12})
    assert await dashboard.get_kpis() == {"monthlyRevenue": 125000.0}
    assert await dashboard.get_stats("surgeries") == {"count": 12}

    clock.advance(60)
    assert await dashboard.get_kpis() is None
    assert await dashboard.get_stats("surgeries") == {"count": 12}

    clock.advance(60)
    assert await dashboard.get_stats("surgeries") is MISS


async def test_dashboard_invalidate(cache):
    dashboard = DashboardCache(cache)
    await dashboard.set_kpis({"a": 1.0})

    async def compute():
        return {"rows": 3}

    assert await dashboard.get_or_compute("stats:orders", compute) == {"rows": 3}
    assert await dashboard.invalidate() == 2
    assert await dashboard.get_kpis() is None
