"""Cache router: explicit eviction and statistics for operators and mutating services."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response

from opme_core.api.dependencies import get_cache_layer
from opme_core.cache.cache_layer import CacheLayer

router = APIRouter()


@router.delete("/keys/{key:path}", status_code=204)
async def invalidate_key(
    key: str,
    cache: Annotated[CacheLayer, Depends(get_cache_layer)],
):
    """Evict one key. Idempotent: absent keys also return 204."""
    await cache.invalidate(key)
    return Response(status_code=204)


@router.delete("")
async def invalidate_prefix(
    cache: Annotated[CacheLayer, Depends(get_cache_layer)],
    prefix: Annotated[str, Query(min_length=1)],
):
    """Evict every key under a prefix, e.g. `search:` after a product update."""
    evicted = await cache.invalidate_pattern(prefix)
    return {"prefix": prefix, "evicted": evicted}


@router.get("/stats")
async def cache_stats(cache: Annotated[CacheLayer, Depends(get_cache_layer)]):
    stats = await cache.stats()
    return {**stats.to_dict(), "ttl_policy": cache.policy.as_dict()}
