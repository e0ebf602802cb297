"""
Circuit breaker in front of the workspace API transport.
"""

from __future__ import annotations

import enum
import time
from typing import Any, Callable

from prometheus_client import Counter, Gauge


# =============================================================================
# Prometheus Metrics
# =============================================================================

CIRCUIT_STATE = Gauge(
    "portal_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open, 2=half_open)",
    ["name"],
)

CIRCUIT_TRIPS = Counter(
    "portal_circuit_breaker_trips_total",
    "Number of times the circuit breaker tripped to OPEN",
    ["name"],
)


# =============================================================================
# Circuit Breaker
# =============================================================================

class CircuitState(enum.Enum):
    CLOSED = 0
    OPEN = 1
    HALF_OPEN = 2


class CircuitOpenError(Exception):
    """Raised when the circuit breaker is OPEN and calls are rejected."""

    def __init__(self, name: str, retry_after: float) -> None:
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit '{name}' is OPEN (retry after {retry_after:.0f}s)")


class CircuitBreaker:
    """Circuit breaker for a single-threaded caller.

    - CLOSED: calls pass through; consecutive failures are counted.
    - After ``failure_threshold`` consecutive failures the circuit trips to OPEN.
    - OPEN: ``CircuitOpenError`` is raised immediately (no network call).
    - After ``recovery_timeout`` seconds the state moves to HALF_OPEN: one
      trial call is allowed through.
    - Trial success -> CLOSED; trial failure -> back to OPEN.

    Only exceptions listed in ``failure_types`` count as failures; anything
    else propagates without touching the counters.
    """

    def __init__(
        self,
        name: str = "api",
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        failure_types: tuple[type[BaseException], ...] = (Exception,),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_types = failure_types
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float = 0.0

        CIRCUIT_STATE.labels(name=self.name).set(CircuitState.CLOSED.value)

    @property
    def state(self) -> CircuitState:
        self._maybe_half_open()
        return self._state

    def call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Execute *func* through the circuit breaker."""
        self._maybe_half_open()
        if self._state == CircuitState.OPEN:
            retry_after = self.recovery_timeout - (self._clock() - self._opened_at)
            raise CircuitOpenError(self.name, max(0.0, retry_after))

        try:
            result = func(*args, **kwargs)
        except self.failure_types:
            self._record_failure()
            raise

        self._record_success()
        return result

    def reset(self) -> None:
        """Force-reset the circuit to CLOSED."""
        self._failure_count = 0
        self._opened_at = 0.0
        self._set_state(CircuitState.CLOSED)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _maybe_half_open(self) -> None:
        if self._state == CircuitState.OPEN and self._clock() - self._opened_at >= self.recovery_timeout:
            self._set_state(CircuitState.HALF_OPEN)

    def _set_state(self, state: CircuitState) -> None:
        self._state = state
        CIRCUIT_STATE.labels(name=self.name).set(state.value)

    def _trip(self) -> None:
        self._opened_at = self._clock()
        self._set_state(CircuitState.OPEN)
        CIRCUIT_TRIPS.labels(name=self.name).inc()

    def _record_success(self) -> None:
        self._failure_count = 0
        if self._state == CircuitState.HALF_OPEN:
            self._set_state(CircuitState.CLOSED)

    def _record_failure(self) -> None:
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN:
            self._trip()
        elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
            self._trip()
