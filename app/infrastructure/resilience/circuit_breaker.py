"""Circuit breaker for remote delivery gateways.

The circuit breaker stops hammering a gateway that keeps failing:
1. CLOSED state: Normal operation, calls pass through
2. OPEN state: Fast-fail calls without contacting the gateway
3. HALF_OPEN state: Let a few calls through to test recovery

State transitions:
- CLOSED -> OPEN: After failure_threshold consecutive failures
- OPEN -> HALF_OPEN: After reset_seconds have elapsed
- HALF_OPEN -> CLOSED: After a successful call
- HALF_OPEN -> OPEN: If a call fails

A call fails when it raises or when ``is_failure`` says its result is a
failure. Transports that report errors as values (OperationResult) count
only transient errors, so a bad address never opens the circuit.
"""

import threading
import time
from enum import Enum
from typing import Any, Callable, Optional

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult

logger = get_module_logger()

Monotonic = Callable[[], float]


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(Exception):
    """Raised when the circuit is open and the call is rejected."""

    def __init__(self, name: str, retry_after: int):
        super().__init__(f"Circuit breaker '{name}' is OPEN. Retry in {retry_after} seconds.")
        self.name = name
        self.retry_after = retry_after


def is_transient_result(result: Any) -> bool:
    return isinstance(result, OperationResult) and result.is_retryable


class CircuitBreaker:
    """Circuit breaker around one gateway.

    Args:
        name: Name of the circuit (typically the channel gateway)
        failure_threshold: Consecutive failures before opening
        reset_seconds: Seconds to stay open before testing recovery
        half_open_max_calls: Concurrent calls allowed while HALF_OPEN
        is_failure: Predicate marking a returned value as a failure
        clock: Monotonic seconds source
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_seconds: float = 60,
        half_open_max_calls: int = 1,
        is_failure: Callable[[Any], bool] = is_transient_result,
        clock: Monotonic = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_seconds = reset_seconds
        self.half_open_max_calls = half_open_max_calls
        self._is_failure = is_failure
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None
        self._half_open_calls = 0
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """Execute ``func`` through the circuit breaker.

        Raises:
            CircuitBreakerOpenError: If the circuit is open
            Exception: Any exception raised by func
        """
        with self._lock:
            if self._state == CircuitState.OPEN:
                remaining = self.reset_seconds - (self._clock() - self._opened_at)
                if remaining > 0:
                    logger.warning(
                        "circuit_breaker_open",
                        name=self.name,
                        retry_in_seconds=int(remaining),
                    )
                    raise CircuitBreakerOpenError(self.name, max(1, int(remaining)))
                self._transition_to_half_open()

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_calls >= self.half_open_max_calls:
                    raise CircuitBreakerOpenError(self.name, 1)
                self._half_open_calls += 1

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(str(e))
            raise
        finally:
            with self._lock:
                if self._state == CircuitState.HALF_OPEN:
                    self._half_open_calls -= 1

        if self._is_failure(result):
            self._on_failure(getattr(result, "message", repr(result)))
        else:
            self._on_success()
        return result

    def _on_success(self):
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to_closed()
            else:
                self._failure_count = 0

    def _on_failure(self, error: str):
        with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                logger.warning("circuit_breaker_recovery_failed", name=self.name, error=error)
                self._transition_to_open()
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self.failure_threshold
            ):
                logger.error(
                    "circuit_breaker_threshold_exceeded",
                    name=self.name,
                    failure_count=self._failure_count,
                    error=error,
                )
                self._transition_to_open()

    def _transition_to_closed(self):
        logger.info("circuit_breaker_closed", name=self.name)
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._half_open_calls = 0

    def _transition_to_open(self):
        logger.error(
            "circuit_breaker_opened", name=self.name, reset_seconds=self.reset_seconds
        )
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
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
            }

    def reset(self):
        """Close the circuit by hand."""
        with self._lock:
            self._transition_to_closed()
