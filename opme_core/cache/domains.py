"""Domain helpers over CacheLayer: embeddings, semantic-search results, dashboard aggregates."""

import hashlib
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from opme_core.cache.cache_layer import CacheLayer
from opme_core.cache.models import MISS
from opme_core.cache.policy import CacheDomain, cache_key

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-large"
DASHBOARD_KPI_TTL = 60
DASHBOARD_STATS_TTL = 120

_WHITESPACE = re.compile(r"\s+")


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class EmbeddingCache:
    """Embedding vectors keyed by sha256(model, text). Long-lived: embeddings rarely change."""

    def __init__(self, cache: CacheLayer, model: str = DEFAULT_EMBEDDING_MODEL) -> None:
        self._cache = cache
        self._model = model

    def key(self, text: str) -> str:
        return cache_key(CacheDomain.EMBEDDING, _sha256(f"{self._model}\x00{text}"))

    async def get(self, text: str) -> Optional[List[float]]:
        entry = await self._cache.get(self.key(text))
        if entry is MISS:
            return None
        return entry["embedding"]

    async def set(self, text: str, embedding: List[float]) -> bool:
        return await self._cache.set(
            self.key(text),
            {
                "embedding": list(embedding),
                "model": self._model,
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            CacheDomain.EMBEDDING,
        )

    async def get_or_generate(
        self,
        text: str,
        generate_fn: Callable[[str], Awaitable[List[float]]],
    ) -> List[float]:
        cached = await self.get(text)
        if cached is not None:
            logger.debug("Embedding cache hit")
            return cached
        logger.debug("Embedding cache miss, generating")
        embedding = await generate_fn(text)
        await self.set(text, embedding)
        return embedding


class SearchCache:
    """Search results keyed by a hash of the normalized query and canonical filters."""

    def __init__(self, cache: CacheLayer) -> None:
        self._cache = cache

    @staticmethod
    def normalize_query(query: str) -> str:
        return _WHITESPACE.sub(" ", query.strip()).lower()

    def key(self, query: str, filters: Optional[Dict[str, Any]] = None) -> str:
        filter_str = json.dumps(filters or {}, sort_keys=True, separators=(",", ":"), default=str)
        return cache_key(CacheDomain.SEARCH, _sha256(f"{self.normalize_query(query)}\x00{filter_str}"))

    async def get(self, query: str, filters: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        entry = await self._cache.get(self.key(query, filters))
        return None if entry is MISS else entry

    async def set(
        self,
        query: str,
        results: List[Any],
        total_count: int,
        filters: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return await self._cache.set(
            self.key(query, filters),
            {
                "results": results,
                "total_count": total_count,
                "query": query,
                "filters": filters,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
            CacheDomain.SEARCH,
        )

    async def get_or_search(
        self,
        query: str,
        search_fn: Callable[[str, Optional[Dict[str, Any]]], Awaitable[List[Any]]],
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Any]:
        cached = await self.get(query, filters)
        if cached is not None:
            return cached["results"]
        results = await search_fn(query, filters)
        await self.set(query, results, len(results), filters)
        return results

    async def invalidate(self) -> int:
        """Evict every cached search. Used when a product or catalogue entry changes."""
        return await self._cache.invalidate_pattern(f"{CacheDomain.SEARCH.value}:")


class DashboardCache:
    """Short-lived dashboard aggregates keyed by scope."""

    def __init__(self, cache: CacheLayer) -> None:
        self._cache = cache

    @staticmethod
    def key(scope: str) -> str:
        return cache_key(CacheDomain.DASHBOARD, scope)

    async def get_kpis(self) -> Optional[Dict[str, float]]:
        value = await self._cache.get(self.key("kpis"))
        return None if value is MISS else value

    async def set_kpis(self, kpis: Dict[str, float]) -> bool:
        return await self._cache.set(self.key("kpis"), kpis, DASHBOARD_KPI_TTL)

    async def get_stats(self, stat_type: str) -> Any:
        return await self._cache.get(self.key(f"stats:{stat_type}"))

    async def set_stats(self, stat_type: str, data: Any) -> bool:
        return await self._cache.set(self.key(f"stats:{stat_type}"), data, DASHBOARD_STATS_TTL)

    async def get_or_compute(
        self,
        scope: str,
        compute_fn: Callable[[], Awaitable[Any]],
        ttl_seconds: int = DASHBOARD_KPI_TTL,
    ) -> Any:
        return await self._cache.get_or_compute(self.key(scope), ttl_seconds, compute_fn)

    async def invalidate(self) -> int:
        return await self._cache.invalidate_pattern(f"{CacheDomain.DASHBOARD.value}:")
