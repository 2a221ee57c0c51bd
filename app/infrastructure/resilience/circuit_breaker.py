"""Circuit breaker for provider resilience.

Each provider wraps its vendor calls in a breaker so a vendor outage makes
the provider report itself unavailable, letting the router fall back.

1. CLOSED state: Normal operation, requests pass through
2. OPEN state: Fast-fail requests without calling the vendor
3. HALF_OPEN state: Test recovery with limited requests

State transitions:
- CLOSED -> OPEN: After failure_threshold consecutive failures
- OPEN -> HALF_OPEN: After timeout period expires
- HALF_OPEN -> CLOSED: After successful request
- HALF_OPEN -> OPEN: If request fails
"""

import threading
from enum import Enum
from datetime import datetime, timedelta, timezone
from typing import Callable, Any, Optional, Dict

import structlog

logger = structlog.get_logger()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(Exception):
    """Raised when circuit breaker is open and request is rejected."""

    pass


class CircuitBreaker:
    """Circuit breaker for provider operations.

    Args:
        name: Name of the circuit (typically provider name)
        failure_threshold: Number of consecutive failures before opening
        timeout_seconds: Seconds to wait before attempting recovery (HALF_OPEN)
        half_open_max_calls: Max requests to allow in HALF_OPEN state
        now: Time source, overridable for tests
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        timeout_seconds: int = 60,
        half_open_max_calls: int = 1,
        now: Callable[[], datetime] = _utc_now,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.timeout_seconds = timeout_seconds
        self.half_open_max_calls = half_open_max_calls
        self._now = now

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[datetime] = None
        self._half_open_calls = 0

        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def allows_request(self) -> bool:
        """True when a call would currently be let through."""
        with self._lock:
            if self._state == CircuitState.OPEN:
                return self._should_attempt_reset()
            if self._state == CircuitState.HALF_OPEN:
                return self._half_open_calls < self.half_open_max_calls
            return True

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """Execute function through circuit breaker.

        Raises:
            CircuitBreakerOpenError: If circuit is open
            Exception: Any exception raised by func
        """
        with self._lock:
            if self._state == CircuitState.OPEN:
                if self._should_attempt_reset():
                    self._transition_to_half_open()
                else:
                    remaining = self._seconds_until_reset()
                    logger.warning(
                        "circuit_breaker_open",
                        name=self.name,
                        failure_count=self._failure_count,
                        retry_in_seconds=remaining,
                    )
                    raise CircuitBreakerOpenError(
                        f"Circuit breaker '{self.name}' is OPEN. "
                        f"Retry in {remaining} seconds."
                    )

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_calls >= self.half_open_max_calls:
                    raise CircuitBreakerOpenError(
                        f"Circuit breaker '{self.name}' is HALF_OPEN "
                        f"(max concurrent calls reached)."
                    )
                self._half_open_calls += 1

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        else:
            self._on_success()
            return result
        finally:
            with self._lock:
                if self._state == CircuitState.HALF_OPEN and self._half_open_calls:
                    self._half_open_calls -= 1

    def _on_success(self):
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to_closed()
            elif self._failure_count > 0:
                self._failure_count = 0

    def _on_failure(self, exception: Exception):
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._now()

            if self._state == CircuitState.HALF_OPEN:
                logger.warning(
                    "circuit_breaker_recovery_failed",
                    name=self.name,
                    error=str(exception),
                )
                self._transition_to_open()
            elif self._state == CircuitState.CLOSED:
                if self._failure_count >= self.failure_threshold:
                    logger.error(
                        "circuit_breaker_threshold_exceeded",
                        name=self.name,
                        failure_count=self._failure_count,
                        threshold=self.failure_threshold,
                        error=str(exception),
                    )
                    self._transition_to_open()
                else:
                    logger.warning(
                        "circuit_breaker_failure",
                        name=self.name,
                        failure_count=self._failure_count,
                        threshold=self.failure_threshold,
                        error=str(exception),
                    )

    def _should_attempt_reset(self) -> bool:
        if self._last_failure_time is None:
            return True
        elapsed = self._now() - self._last_failure_time
        return elapsed >= timedelta(seconds=self.timeout_seconds)

    def _seconds_until_reset(self) -> int:
        if self._last_failure_time is None:
            return 0
        elapsed = (self._now() - self._last_failure_time).total_seconds()
        return max(0, int(self.timeout_seconds - elapsed))

    def _transition_to_closed(self):
        logger.info("circuit_breaker_closed", name=self.name)
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._half_open_calls = 0

    def _transition_to_open(self):
        logger.error(
            "circuit_breaker_opened",
            name=self.name,
            timeout_seconds=self.timeout_seconds,
        )
        self._state = CircuitState.OPEN
        self._half_open_calls = 0

    def _transition_to_half_open(self):
        logger.info("circuit_breaker_half_open", name=self.name)
        self._state = CircuitState.HALF_OPEN
        self._half_open_calls = 0

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "last_failure_time": (
                    self._last_failure_time.isoformat()
                    if self._last_failure_time
                    else None
                ),
            }

    def reset(self):
        """Manually reset circuit breaker (for testing/admin operations)."""
        with self._lock:
            logger.info("circuit_breaker_manual_reset", name=self.name)
            self._transition_to_closed()


_circuit_breaker_registry: Dict[str, CircuitBreaker] = {}
_registry_lock = threading.Lock()


def register_circuit_breaker(cb: CircuitBreaker) -> None:
    """Register a circuit breaker for monitoring."""
    with _registry_lock:
        _circuit_breaker_registry[cb.name] = cb


def get_all_circuit_breaker_stats() -> dict:
    """Get statistics for all registered circuit breakers."""
    with _registry_lock:
        breakers = list(_circuit_breaker_registry.values())
    return {cb.name: cb.get_stats() for cb in breakers}
