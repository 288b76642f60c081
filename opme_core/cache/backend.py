"""Cache backing-store protocol and the in-memory implementation used locally and in tests."""

import time
from collections import OrderedDict
from typing import Callable, Optional, Protocol


class CacheBackend(Protocol):
    """Key/value store with per-key atomic writes and TTL expiry. Values are opaque strings."""

    async def get(self, key: str) -> Optional[str]:
        """Return the stored string or None when absent/expired."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store value, replacing any prior entry, expiring after ttl_seconds."""
        ...

    async def delete(self, key: str) -> int:
        """Delete key; return number of keys removed (0 when absent)."""
        ...

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix; return number removed."""
        ...

    async def count(self) -> Optional[int]:
        """Number of live keys, or None when the store cannot tell cheaply."""
        ...


class InMemoryCacheBackend:
    """
    Process-local store. Expiry is checked on read; when full, the oldest
    written entry is evicted. clock is injectable so tests can advance time.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._clock = clock
        self._store: "OrderedDict[str, tuple[str, float]]" = OrderedDict()

    def _live(self, key: str) -> Optional[str]:
        item = self._store.get(key)
        if item is None:
            return None
        value, expires_at = item
        if self._clock() >= expires_at:
            del self._store[key]
            return None
        return value

    async def get(self, key: str) -> Optional[str]:
        return self._live(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if key in self._store:
            self._store.move_to_end(key)
        elif len(self._store) >= self._max_entries:
            self._store.popitem(last=False)
        self._store[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> int:
        return 1 if self._store.pop(key, None) is not None else 0

    async def delete_prefix(self, prefix: str) -> int:
        doomed = [k for k in self._store if k.startswith(prefix)]
        for key in doomed:
            del self._store[key]
        return len(doomed)

    async def count(self) -> Optional[int]:
        for key in list(self._store):
            self._live(key)
        return len(self._store)

    async def clear(self) -> None:
        self._store.clear()
