# opme_core/infrastructure/cache/redis_client.py

import re
from typing import Optional

import redis.asyncio as redis

from opme_core.config.settings import settings

# Characters with meaning in Redis glob patterns (SCAN MATCH).
_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")

SCAN_BATCH = 500


class RedisClient:
    """
    CacheBackend over Redis. Expiry is server-side (SET EX); every key is
    stored under the deployment prefix so several environments can share an instance.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        key_prefix: Optional[str] = None,
        client: Optional[redis.Redis] = None,
    ) -> None:
        self.client = client or redis.from_url(
            url or settings.redis_url,
            decode_responses=True,
        )
        self._prefix = settings.cache_key_prefix if key_prefix is None else key_prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str | None:
        """Get value for key. Returns None if key does not exist or has expired."""
        return await self.client.get(self._key(key))

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Set key to value with TTL, replacing any prior value."""
        await self.client.set(self._key(key), value, ex=ttl_seconds)

    async def delete(self, key: str) -> int:
        """Delete a key. Returns 1 if it existed, 0 otherwise."""
        return int(await self.client.delete(self._key(key)))

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix via SCAN; non-blocking for large keyspaces."""
        pattern = _GLOB_SPECIAL.sub(r"\\\1", self._key(prefix)) + "*"
        removed = 0
        batch: list[str] = []
        async for key in self.client.scan_iter(match=pattern, count=SCAN_BATCH):
            batch.append(key)
            if len(batch) >= SCAN_BATCH:
                removed += int(await self.client.delete(*batch))
                batch = []
        if batch:
            removed += int(await self.client.delete(*batch))
        return removed

    async def count(self) -> int | None:
        """Number of keys under the deployment prefix."""
        pattern = _GLOB_SPECIAL.sub(r"\\\1", self._prefix) + "*"
        total = 0
        async for _ in self.client.scan_iter(match=pattern, count=SCAN_BATCH):
            total += 1
        return total

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()
