"""Cache layer: cache-aside facade, TTL policy table, domain helpers. No FastAPI."""

from opme_core.cache.backend import CacheBackend, InMemoryCacheBackend
from opme_core.cache.cache_layer import CacheLayer
from opme_core.cache.domains import DashboardCache, EmbeddingCache, SearchCache
from opme_core.cache.exceptions import CacheError, CacheWriteError, InvalidTTLError
from opme_core.cache.models import MISS, CacheEntry, CacheMiss, CacheStats
from opme_core.cache.policy import CacheDomain, TTLPolicy, cache_key

__all__ = [
    "CacheBackend",
    "CacheDomain",
    "CacheEntry",
    "CacheError",
    "CacheLayer",
    "CacheMiss",
    "CacheStats",
    "CacheWriteError",
    "DashboardCache",
    "EmbeddingCache",
    "InMemoryCacheBackend",
    "InvalidTTLError",
    "MISS",
    "SearchCache",
    "TTLPolicy",
    "cache_key",
]
