"""Circuit breaker guarding a flaky backing store: CLOSED, OPEN, HALF_OPEN."""

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(RuntimeError):
    """Raised by CircuitBreaker.call while the circuit is open."""

    def __init__(self, name: str) -> None:
        self.message = f"Circuit breaker {name} is OPEN"
        super().__init__(self.message)


class CircuitBreaker:
    """
    After failure_threshold consecutive failures, open for recovery_timeout_seconds,
    then half-open: one trial call goes through while other callers are rejected
    until it settles. State changes are guarded by an asyncio.Lock.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout_seconds: float = 30.0,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._threshold = failure_threshold
        self._recovery_timeout = recovery_timeout_seconds
        self._name = name
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at: float | None = None
        self._trial_in_flight = False
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def name(self) -> str:
        return self._name

    def _record_success(self) -> None:
        self._failures = 0
        self._opened_at = None
        self._state = CircuitState.CLOSED

    def _record_failure(self) -> None:
        self._failures += 1
        if self._state == CircuitState.HALF_OPEN or self._failures >= self._threshold:
            self._state = CircuitState.OPEN
            self._opened_at = self._clock()

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Execute func through the circuit. Raises CircuitOpenError while OPEN or while a trial call is running."""
        async with self._lock:
            if self._state == CircuitState.OPEN:
                elapsed = self._clock() - (self._opened_at or 0.0)
                if elapsed < self._recovery_timeout:
                    raise CircuitOpenError(self._name)
                self._state = CircuitState.HALF_OPEN
            elif self._state == CircuitState.HALF_OPEN and self._trial_in_flight:
                raise CircuitOpenError(self._name)
            trial = self._state == CircuitState.HALF_OPEN
            if trial:
                self._trial_in_flight = True
        try:
            result = await func(*args, **kwargs)
        except Exception:
            async with self._lock:
                self._record_failure()
            raise
        finally:
            if trial:
                self._trial_in_flight = False
        async with self._lock:
            self._record_success()
        return result
