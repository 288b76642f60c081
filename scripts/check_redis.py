# scripts/check_redis.py

import sys
from pathlib import Path

# Ensure project root is on the path when running this script directly
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import asyncio

from opme_core.cache.cache_layer import CacheLayer
from opme_core.infrastructure.cache.redis_client import RedisClient


async def check():
    r = RedisClient()
    print("Ping:", await r.ping())

    cache = CacheLayer(r)
    stored = await cache.set("dashboard:healthcheck", {"ok": True}, 30)
    print("Write:", stored)
    print("Read:", await cache.get("dashboard:healthcheck"))
    await cache.invalidate("dashboard:healthcheck")

    await r.close()


asyncio.run(check())
