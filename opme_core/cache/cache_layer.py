"""
Cache-aside facade over a CacheBackend.

Reads never raise for store trouble: an unreachable, slow, or open-circuit
backend turns every get into a miss and every set into a logged no-op, so the
freshly computed value is always what the caller gets back. TTL choice stays
with the call site (an int or a CacheDomain resolved through TTLPolicy).
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from opme_core.cache.backend import CacheBackend
from opme_core.cache.exceptions import CacheReadError, CacheWriteError
from opme_core.cache.models import MISS, CacheEntry, CacheMiss, CacheStats
from opme_core.cache.policy import CacheDomain, TTLPolicy, key_domain
from opme_core.observability import metrics as m
from opme_core.observability.metrics import MetricsCollector
from opme_core.scalability.circuit_breaker import CircuitBreaker

T = TypeVar("T")

TTL = Union[int, CacheDomain]


class CacheLayer:
    """get / set / invalidate / invalidate_pattern / get_or_compute with uniform failure semantics."""

    def __init__(
        self,
        backend: CacheBackend,
        *,
        policy: Optional[TTLPolicy] = None,
        metrics: Optional[MetricsCollector] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        timeout_seconds: float = 2.0,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._backend = backend
        self._policy = policy or TTLPolicy()
        self._metrics = metrics or MetricsCollector()
        self._breaker = circuit_breaker
        self._timeout = timeout_seconds
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._hits = 0
        self._misses = 0
        self._write_failures = 0

    @property
    def policy(self) -> TTLPolicy:
        return self._policy

    async def _call(self, func: Callable[..., Awaitable[T]], *args: Any) -> T:
        async def bounded() -> T:
            return await asyncio.wait_for(func(*args), timeout=self._timeout)

        if self._breaker is None:
            return await bounded()
        return await self._breaker.call(bounded)

    def _record_miss(self, key: str) -> CacheMiss:
        self._misses += 1
        self._metrics.increment(m.CACHE_MISS, category=key_domain(key))
        return MISS

    async def _read(self, key: str) -> Optional[str]:
        try:
            return await self._call(self._backend.get, key)
        except Exception as e:
            raise CacheReadError(f"Cache read failed for {key}: {e!r}") from e

    async def _write(self, entry: CacheEntry) -> None:
        try:
            raw = entry.to_json()
            await self._call(self._backend.set, entry.key, raw, entry.ttl_seconds)
        except Exception as e:
            raise CacheWriteError(f"Cache write failed for {entry.key}: {e!r}") from e

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for key, or None. Store errors count as a miss."""
        try:
            raw = await self._read(key)
        except CacheReadError as e:
            self._metrics.increment(m.CACHE_READ_FAILURE, category=key_domain(key))
            self._logger.warning(e.message, extra={"cache_key": key})
            return None
        if raw is None:
            return None
        try:
            entry = CacheEntry.from_json(key, raw)
        except (ValueError, KeyError, TypeError):
            self._logger.warning("Discarding undecodable cache entry", extra={"cache_key": key})
            return None
        if entry.is_expired(self._clock()):
            return None
        return entry

    async def get(self, key: str) -> Any:
        """Return the cached value, or MISS. Never auto-populates."""
        entry = await self.get_entry(key)
        if entry is None:
            return self._record_miss(key)
        self._hits += 1
        self._metrics.increment(m.CACHE_HIT, category=key_domain(key))
        return entry.value

    async def set(self, key: str, value: Any, ttl_seconds: TTL) -> bool:
        """
        Store value under key for ttl_seconds. Returns False when the write did not
        land; the failure is logged and never raised. An invalid TTL raises
        InvalidTTLError since that is a caller bug, not a store condition.
        """
        ttl = self._policy.resolve(ttl_seconds)
        entry = CacheEntry(key=key, value=value, ttl_seconds=ttl, stored_at=self._clock())
        try:
            await self._write(entry)
        except CacheWriteError as e:
            self._write_failures += 1
            self._metrics.increment(m.CACHE_WRITE_FAILURE, category=key_domain(key))
            self._logger.warning(e.message, extra={"cache_key": key})
            return False
        self._metrics.increment(m.CACHE_WRITE, category=key_domain(key))
        return True

    async def invalidate(self, key: str) -> None:
        """Evict key. Absent keys and store failures are both no-ops."""
        try:
            removed = await self._call(self._backend.delete, key)
        except Exception as e:
            self._logger.warning(
                "Cache invalidation failed: %r", e, extra={"cache_key": key}
            )
            return
        self._metrics.increment(m.CACHE_INVALIDATION, removed or 0, category=key_domain(key))

    async def invalidate_pattern(self, prefix: str) -> int:
        """Evict every key starting with prefix. Returns the number evicted (0 on store failure)."""
        if not prefix:
            raise ValueError("prefix must be non-empty; refusing to invalidate the whole cache")
        try:
            removed = await self._call(self._backend.delete_prefix, prefix)
        except Exception as e:
            self._logger.warning(
                "Cache pattern invalidation failed: %r", e, extra={"cache_key": f"{prefix}*"}
            )
            return 0
        self._metrics.increment(m.CACHE_INVALIDATION, removed, category=key_domain(prefix))
        self._logger.info("Cache invalidated %d keys matching %s*", removed, prefix)
        return removed

    async def get_or_compute(
        self,
        key: str,
        ttl_seconds: TTL,
        compute_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Cached value on hit; otherwise await compute_fn once, cache and return its result.
        compute_fn errors propagate unchanged and nothing is cached. Concurrent
        callers missing the same key each compute (no request coalescing).
        """
        ttl = self._policy.resolve(ttl_seconds)
        cached = await self.get(key)
        if cached is not MISS:
            return cached
        started = time.perf_counter()
        value = await compute_fn()
        self._metrics.observe_latency(
            m.CACHE_COMPUTE_LATENCY,
            (time.perf_counter() - started) * 1000,
            category=key_domain(key),
        )
        await self.set(key, value, ttl)
        return value

    async def stats(self) -> CacheStats:
        try:
            total_keys = await self._call(self._backend.count)
        except Exception as e:
            self._logger.warning("Cache key count unavailable: %r", e)
            total_keys = None
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            write_failures=self._write_failures,
            total_keys=total_keys,
        )
