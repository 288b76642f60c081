"""Cache value types: entry envelope, stats, and the MISS sentinel."""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict


class CacheMiss:
    """Outcome of a read that found nothing usable. Falsy; compare with `is MISS`."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS = CacheMiss()


@dataclass(frozen=True)
class CacheEntry:
    """A cached value with its write time and TTL. Serialized as a JSON envelope."""

    key: str
    value: Any
    ttl_seconds: int
    stored_at: float

    @property
    def expires_at(self) -> float:
        return self.stored_at + self.ttl_seconds

    @property
    def stored_at_utc(self) -> datetime:
        return datetime.fromtimestamp(self.stored_at, tz=timezone.utc)

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_json(self) -> str:
        """
        Envelope stored in the backend. Raises TypeError/ValueError for values that
        are unserializable or would decode differently (tuples, non-string dict keys),
        so a hit always returns what the miss path returned.
        """
        envelope: Dict[str, Any] = {
            "value": self.value,
            "stored_at": self.stored_at,
            "ttl_seconds": self.ttl_seconds,
        }
        raw = json.dumps(envelope, allow_nan=False)
        if json.loads(raw)["value"] != self.value:
            raise ValueError("value does not survive a JSON round trip unchanged")
        return raw

    @classmethod
    def from_json(cls, key: str, raw: str) -> "CacheEntry":
        """Decode an envelope. Raises ValueError/KeyError/TypeError when malformed."""
        data = json.loads(raw)
        return cls(
            key=key,
            value=data["value"],
            ttl_seconds=int(data["ttl_seconds"]),
            stored_at=float(data["stored_at"]),
        )


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    write_failures: int
    total_keys: int | None

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "write_failures": self.write_failures,
            "total_keys": self.total_keys,
        }
