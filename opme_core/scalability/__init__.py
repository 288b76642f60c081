"""Scalability layer: circuit breaker guarding the shared cache store. No FastAPI."""

from opme_core.scalability.circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState

__all__ = ["CircuitBreaker", "CircuitOpenError", "CircuitState"]
