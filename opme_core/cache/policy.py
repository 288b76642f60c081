"""TTL policy table: one place that maps a cache domain to its default lifetime."""

from enum import Enum
from typing import Mapping, Optional

from opme_core.cache.exceptions import InvalidTTLError


class CacheDomain(str, Enum):
    EMBEDDING = "embedding"
    SEARCH = "search"
    PRODUCT = "product"
    USER_SESSION = "user_session"
    AI_RESPONSE = "ai_response"
    REGULATORY = "regulatory"
    DASHBOARD = "dashboard"


DEFAULT_TTL_SECONDS: dict[CacheDomain, int] = {
    CacheDomain.EMBEDDING: 86400 * 7,
    CacheDomain.SEARCH: 300,
    CacheDomain.PRODUCT: 3600,
    CacheDomain.USER_SESSION: 86400,
    CacheDomain.AI_RESPONSE: 1800,
    CacheDomain.REGULATORY: 86400,
    CacheDomain.DASHBOARD: 60,
}


def validate_ttl(ttl_seconds: object) -> int:
    """Return ttl_seconds if it is a positive int; raise InvalidTTLError otherwise."""
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, int) or ttl_seconds <= 0:
        raise InvalidTTLError(f"ttl_seconds must be a positive integer, got {ttl_seconds!r}")
    return ttl_seconds


class TTLPolicy:
    """Domain -> TTL table. Overrides replace individual defaults."""

    def __init__(self, overrides: Optional[Mapping[CacheDomain, int]] = None) -> None:
        table = dict(DEFAULT_TTL_SECONDS)
        for domain, ttl in (overrides or {}).items():
            table[CacheDomain(domain)] = validate_ttl(ttl)
        self._table = table

    def ttl_for(self, domain: CacheDomain) -> int:
        return self._table[CacheDomain(domain)]

    def resolve(self, ttl: "int | CacheDomain") -> int:
        """Accept either an explicit TTL or a domain whose default applies."""
        if isinstance(ttl, CacheDomain):
            return self.ttl_for(ttl)
        return validate_ttl(ttl)

    def as_dict(self) -> dict[str, int]:
        return {domain.value: ttl for domain, ttl in self._table.items()}


def cache_key(domain: CacheDomain, *parts: str) -> str:
    """Namespaced key, e.g. cache_key(CacheDomain.DASHBOARD, "monthlyRevenue") -> "dashboard:monthlyRevenue"."""
    if not parts:
        raise ValueError("cache_key requires at least one key part")
    return ":".join([CacheDomain(domain).value, *parts])


def key_domain(key: str) -> str:
    """Namespace portion of a key, used as the metrics category."""
    return key.split(":", 1)[0]
