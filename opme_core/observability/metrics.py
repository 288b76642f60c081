"""In-memory metrics collector for cache and audit activity. Thread-safe, no exporter dependency."""

import threading
from typing import Any

# Counter names shared by the cache layer and the audit trail.
CACHE_HIT = "cache_hit"
CACHE_MISS = "cache_miss"
CACHE_WRITE = "cache_write"
CACHE_WRITE_FAILURE = "cache_write_failure"
CACHE_READ_FAILURE = "cache_read_failure"
CACHE_INVALIDATION = "cache_invalidation"
AUDIT_APPEND = "audit_append"
AUDIT_APPEND_CONFLICT = "audit_append_conflict"
AUDIT_APPEND_FAILURE = "audit_append_failure"
AUDIT_CHAIN_VIOLATION = "audit_chain_violation"
AUDIT_APPEND_LATENCY = "audit_append_latency_ms"
CACHE_COMPUTE_LATENCY = "cache_compute_latency_ms"


class MetricsCollector:
    """
    Counters (optionally labelled by tenant or category) and latency histograms.
    Exposes increment, observe_latency, counter, export_metrics.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, float] = {}
        self._counters_by_labels: dict[str, dict[str, float]] = {}
        # Running aggregates per bucket; observations are not retained.
        self._histograms: dict[str, dict[str, float]] = {}

    @staticmethod
    def _label_key(name: str, tenant_id: str | None, category: str | None) -> str | None:
        if tenant_id is not None:
            return f"{name}:tenant={tenant_id}"
        if category is not None:
            return f"{name}:category={category}"
        return None

    def increment(
        self,
        name: str,
        value: float = 1.0,
        *,
        tenant_id: str | None = None,
        category: str | None = None,
    ) -> None:
        """Increment a counter. Labelled increments also roll up into the plain total."""
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value
            key = self._label_key(name, tenant_id, category)
            if key is not None:
                labels = self._counters_by_labels.setdefault(name, {})
                labels[key] = labels.get(key, 0) + value

    def observe_latency(
        self,
        name: str,
        latency_ms: float,
        *,
        category: str | None = None,
    ) -> None:
        """Record a latency observation into the bucket's count, sum and max."""
        with self._lock:
            bucket = name if category is None else f"{name}:category={category}"
            h = self._histograms.setdefault(bucket, {"count": 0, "sum": 0.0, "max": 0.0})
            h["count"] += 1
            h["sum"] += latency_ms
            h["max"] = max(h["max"], latency_ms)

    def counter(
        self,
        name: str,
        *,
        tenant_id: str | None = None,
        category: str | None = None,
    ) -> float:
        """Current value of a counter (0 when never incremented)."""
        with self._lock:
            key = self._label_key(name, tenant_id, category)
            if key is None:
                return self._counters.get(name, 0)
            return self._counters_by_labels.get(name, {}).get(key, 0)

    def export_metrics(self) -> dict[str, Any]:
        """Export all metrics as a plain dict."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "counters_by_labels": {
                    k: dict(v) for k, v in self._counters_by_labels.items()
                },
                "histograms": {k: dict(v) for k, v in self._histograms.items()},
            }

    def reset(self) -> None:
        """Reset all metrics (for tests)."""
        with self._lock:
            self._counters.clear()
            self._counters_by_labels.clear()
            self._histograms.clear()
