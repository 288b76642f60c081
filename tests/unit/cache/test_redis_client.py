"""RedisClient adapter: deployment prefix, SET EX, SCAN-based prefix deletes."""

import fnmatch

import pytest

from opme_core.infrastructure.cache.redis_client import RedisClient


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis covering the calls the adapter makes."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.scan_patterns: list[str] = []
        self.closed = False

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttls[key] = ex

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match=None, count=None):
        self.scan_patterns.append(match)
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def ping(self):
        return True

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def client(fake_redis):
    return RedisClient(key_prefix="opme:test:", client=fake_redis)


async def test_set_uses_prefix_and_expiry(client, fake_redis):
    await client.set("product:P1", '{"value": 1}', 3600)
    assert fake_redis.store == {"opme:test:product:P1": '{"value": 1}'}
    assert fake_redis.ttls["opme:test:product:P1"] == 3600
    assert await client.get("product:P1") == '{"value": 1}'


async def test_delete_counts(client):
    await client.set("product:P1", "v", 60)
    assert await client.delete("product:P1") == 1
    assert await client.delete("product:P1") == 0


async def test_delete_prefix_stays_inside_deployment(client, fake_redis):
    fake_redis.store["opme:other:search:x"] = "v"
    await client.set("search:a", "v", 60)
    await client.set("search:b", "v", 60)
    await client.set("product:a", "v", 60)
    assert await client.delete_prefix("search:") == 2
    assert set(fake_redis.store) == {"opme:other:search:x", "opme:test:product:a"}
    assert await client.count() == 1


async def test_glob_characters_in_prefix_are_escaped(client, fake_redis):
    await client.delete_prefix("search:[draft]*")
    assert fake_redis.scan_patterns[-1] == r"opme:test:search:\[draft\]\**"


async def test_ping_and_close(client, fake_redis):
    assert await client.ping() is True
    await client.close()
    assert fake_redis.closed
