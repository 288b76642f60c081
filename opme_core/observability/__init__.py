"""Observability layer: in-process metrics for the cache layer and audit trail."""

from opme_core.observability.metrics import MetricsCollector

__all__ = ["MetricsCollector"]
