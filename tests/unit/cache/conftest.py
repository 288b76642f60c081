"""Fixtures for cache unit tests: controllable clock, in-memory backend, cache layer."""

import pytest

from opme_core.cache.backend import InMemoryCacheBackend
from opme_core.cache.cache_layer import CacheLayer
from opme_core.observability.metrics import MetricsCollector


class FakeClock:
    """Wall clock the test advances by hand."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FailingBackend:
    """Backend that raises on every call (simulated Redis outage)."""

    def __init__(self):
        self.calls = 0

    async def get(self, key: str):
        self.calls += 1
        raise ConnectionError("Redis connection refused")

    async def set(self, key: str, value: str, ttl_seconds: int):
        self.calls += 1
        raise ConnectionError("Redis connection refused")

    async def delete(self, key: str):
        self.calls += 1
        raise ConnectionError("Redis connection refused")

    async def delete_prefix(self, prefix: str):
        self.calls += 1
        raise ConnectionError("Redis connection refused")

    async def count(self):
        self.calls += 1
        raise ConnectionError("Redis connection refused")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend(clock):
    return InMemoryCacheBackend(max_entries=100, clock=clock)


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def cache(backend, clock, metrics):
    return CacheLayer(backend, metrics=metrics, clock=clock, timeout_seconds=0.5)


@pytest.fixture
def failing_backend():
    return FailingBackend()
