"""
Circuit breaker around order event publishing.

After `broadcast_breaker_threshold` consecutive failures the breaker opens
and publishes are skipped without touching Redis. Once the cooldown has
passed a single trial publish is let through: success closes the breaker,
failure opens it again for another cooldown.
"""

from __future__ import annotations

import threading
import time
from enum import Enum

from pos_shared.config.settings import settings
from pos_shared.config.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class EventCircuitBreaker:
    """Thread-safe; the CLI and the API share the publisher code."""

    def __init__(self, failure_threshold: int | None = None, recovery_timeout: float | None = None):
        self.failure_threshold = failure_threshold or settings.broadcast_breaker_threshold
        self.recovery_timeout = (
            recovery_timeout if recovery_timeout is not None else settings.broadcast_breaker_cooldown
        )
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = 0.0
        self._skipped = 0
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    def can_execute(self) -> bool:
        with self._lock:
            if self._state is CircuitState.CLOSED:
                return True
            cooled_down = time.monotonic() - self._opened_at >= self.recovery_timeout
            if self._state is CircuitState.OPEN and cooled_down:
                # This caller makes the trial publish; others keep skipping until it reports back
                self._state = CircuitState.HALF_OPEN
                logger.info("Event circuit breaker probing Redis")
                return True
            self._skipped += 1
            return False

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            trial_failed = self._state is CircuitState.HALF_OPEN
            if trial_failed or self._failures >= self.failure_threshold:
                if self._state is not CircuitState.OPEN:
                    logger.error("Event circuit breaker opened", failures=self._failures)
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()

    def record_success(self) -> None:
        with self._lock:
            if self._state is not CircuitState.CLOSED:
                logger.info("Event circuit breaker closed again")
            self._state = CircuitState.CLOSED
            self._failures = 0

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "state": self._state.value,
                "failure_count": self._failures,
                "rejected_count": self._skipped,
            }


_event_circuit_breaker = EventCircuitBreaker()


def get_event_circuit_breaker() -> EventCircuitBreaker:
    return _event_circuit_breaker
