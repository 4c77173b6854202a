"""
Circuit breaker for AI provider calls.

Each AI provider sits behind its own breaker so a failing provider is
skipped quickly and the fallback chain moves on to the next one instead of
waiting out another timeout.

States:
- CLOSED: calls pass through.
- OPEN: provider considered down; calls are rejected until the cooldown ends.
- HALF_OPEN: cooldown ended; a single trial call decides whether to close.

Usage:
    breaker = await get_circuit_breaker("openai")
    text = await breaker.call(lambda: provider.complete(system, transcript))
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(StrEnum):
    """Possible states for a circuit breaker."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """Raised when a call is rejected because the circuit is open."""

    def __init__(self, name: str, retry_after: float) -> None:
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Provider '{name}' circuit is open, retry after {retry_after:.1f}s")


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker guarded by an asyncio.Lock.

    Args:
        name: Provider name (used in logs and the registry).
        failure_threshold: Consecutive failures before opening.
        recovery_timeout: Seconds in OPEN before a trial call is allowed.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._trial_in_flight = False
        self._opened_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def retry_after_seconds(self) -> float:
        """Seconds until an OPEN circuit lets a trial call through."""
        if self._state != CircuitState.OPEN:
            return 0.0
        return max(0.0, self.recovery_timeout - (time.monotonic() - self._opened_at))

    def _move_to(self, new_state: CircuitState) -> None:
        if new_state == self._state:
            return
        logger.info("Provider circuit '%s': %s -> %s", self.name, self._state.value, new_state.value)
        self._state = new_state

    async def allow_request(self) -> bool:
        """Decide whether the next call may reach the provider."""
        async with self._lock:
            if self._state == CircuitState.CLOSED:
                return True
            if self._state == CircuitState.OPEN:
                if self.retry_after_seconds() > 0:
                    return False
                self._move_to(CircuitState.HALF_OPEN)
                self._trial_in_flight = False
            if self._trial_in_flight:
                return False
            self._trial_in_flight = True
            return True

    async def record_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            self._trial_in_flight = False
            self._move_to(CircuitState.CLOSED)

    async def record_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            self._trial_in_flight = False
            if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
                if self._state != CircuitState.OPEN:
                    logger.warning(
                        "Provider circuit '%s' opening after %d consecutive failures",
                        self.name,
                        self._failure_count,
                    )
                self._opened_at = time.monotonic()
                self._move_to(CircuitState.OPEN)

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run one provider call through the breaker.

        Raises:
            CircuitBreakerError: if the circuit rejects the call.
            Exception: whatever the operation raised (recorded as a failure).
        """
        if not await self.allow_request():
            raise CircuitBreakerError(self.name, self.retry_after_seconds())
        try:
            result = await operation()
        except Exception:
            await self.record_failure()
            raise
        await self.record_success()
        return result

    async def reset(self) -> None:
        """Force the breaker back to CLOSED."""
        async with self._lock:
            self._failure_count = 0
            self._trial_in_flight = False
            self._opened_at = 0.0
            self._move_to(CircuitState.CLOSED)


# =============================================================================
# Registry: one breaker per provider name
# =============================================================================

_registry: dict[str, CircuitBreaker] = {}
_registry_lock = asyncio.Lock()


async def get_circuit_breaker(
    name: str,
    failure_threshold: int = 3,
    recovery_timeout: float = 30.0,
) -> CircuitBreaker:
    """Get or create the named breaker (thresholds apply on creation only)."""
    async with _registry_lock:
        if name not in _registry:
            _registry[name] = CircuitBreaker(
                name=name,
                failure_threshold=failure_threshold,
                recovery_timeout=recovery_timeout,
            )
        return _registry[name]


def get_all_circuit_breakers() -> dict[str, CircuitBreaker]:
    """Snapshot of registered breakers, for health reporting."""
    return dict(_registry)


def reset_circuit_breakers() -> None:
    """Drop every registered breaker (used between tests)."""
    _registry.clear()
