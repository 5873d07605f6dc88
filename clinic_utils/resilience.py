"""Retry with backoff and a circuit breaker around resource reads."""

import functools
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import exc as sa_exc

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "The service is currently unavailable."


class TransientError(Exception):
    """Infrastructure failure worth retrying (timeouts, lost connections)."""


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation, requests allowed
    OPEN = "open"  # Failure threshold exceeded, requests short-circuited
    HALF_OPEN = "half_open"  # One probe allowed through


@dataclass
class RetryPolicy:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    backoff: float = 0.5  # Delay before the second attempt, in seconds
    backoff_multiplier: float = 1.0  # 1.0 keeps the delay fixed
    max_backoff: float = 10.0
    retryable: tuple = (
        TransientError,
        ConnectionError,
        TimeoutError,
        sa_exc.OperationalError,
        sa_exc.TimeoutError,
    )

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        delay = self.backoff * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_backoff)

    def is_retryable(self, error: BaseException) -> bool:
        return isinstance(error, self.retryable)


@dataclass(frozen=True)
class Fallback:
    """Degraded response returned instead of a result. Never a success."""

    message: str = UNAVAILABLE_MESSAGE
    reason: str = "circuit_open"  # or "retries_exhausted"
    retry_after: float | None = None


class CircuitBreaker:
    """Thread-safe circuit breaker.

    Opens after ``failure_threshold`` failed calls inside a rolling ``window``
    (seconds); any success clears the count. While open every call is refused
    until ``cooldown`` has elapsed, then a single probe is admitted.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        window: float = 60.0,
        cooldown: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.name = name
        self.failure_threshold = failure_threshold
        self.window = window
        self.cooldown = cooldown
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failures: deque[float] = deque()
        self._opened_at: float | None = None
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def get_state(self) -> dict:
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": len(self._failures),
                "opened_at": self._opened_at,
            }

    def reset(self) -> None:
        with self._lock:
            self._to_closed()
        logger.info("Circuit breaker reset for %s", self.name)

    def try_acquire(self) -> float | None:
        """Ask permission for one call.

        Returns None when the call may proceed, otherwise the seconds left
        before a probe will be admitted.
        """
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return None
            if self._state == CircuitState.OPEN:
                elapsed = self._clock() - self._opened_at
                if elapsed < self.cooldown:
                    return self.cooldown - elapsed
                logger.info("Circuit breaker half-opening for %s", self.name)
                self._state = CircuitState.HALF_OPEN
                self._probe_in_flight = False
            # HALF_OPEN: exactly one probe at a time
            if self._probe_in_flight:
                return 0.0
            self._probe_in_flight = True
            return None

    def record_success(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                logger.info("Circuit breaker closing for %s", self.name)
            self._to_closed()

    def record_failure(self, error: BaseException | None = None) -> None:
        with self._lock:
            now = self._clock()
            if self._state == CircuitState.OPEN:
                # already open; don't push the cooldown further out
                return
            if self._state == CircuitState.HALF_OPEN:
                logger.warning("Circuit breaker reopening for %s: %s", self.name, error)
                self._to_open(now)
                return
            self._failures.append(now)
            while self._failures and now - self._failures[0] > self.window:
                self._failures.popleft()
            if len(self._failures) >= self.failure_threshold:
                logger.warning(
                    "Circuit breaker opening for %s: %d failures in %.0fs",
                    self.name,
                    len(self._failures),
                    self.window,
                )
                self._to_open(now)

    def release_probe(self) -> None:
        """Give back a half-open probe slot without judging the service."""
        with self._lock:
            self._probe_in_flight = False

    def _to_open(self, now: float) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = now
        self._probe_in_flight = False

    def _to_closed(self) -> None:
        self._state = CircuitState.CLOSED
        self._failures.clear()
        self._opened_at = None
        self._probe_in_flight = False


class ResilientCallGateway:
    """Runs an operation under a retry policy and a circuit breaker.

    ``call`` returns the operation's result, or a ``Fallback`` when the circuit
    is open or every attempt failed transiently. Non-transient exceptions
    propagate on the first attempt and do not count against the breaker.
    """

    def __init__(
        self,
        breaker: CircuitBreaker,
        policy: RetryPolicy | None = None,
        on_error: Callable[[BaseException], Any] | None = None,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        self.breaker = breaker
        self.policy = policy or RetryPolicy()
        self._on_error = on_error
        self._sleep = sleep

    def call(self, operation: Callable[..., Any], *args, **kwargs) -> Any:
        retry_after = self.breaker.try_acquire()
        if retry_after is not None:
            logger.info("Circuit %s open, returning fallback", self.breaker.name)
            return Fallback(reason="circuit_open", retry_after=retry_after)

        last_error: BaseException | None = None
        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                result = operation(*args, **kwargs)
            except Exception as e:
                if self._on_error is not None:
                    self._on_error(e)
                if not self.policy.is_retryable(e):
                    self.breaker.release_probe()
                    raise
                last_error = e
                if attempt < self.policy.max_attempts:
                    delay = self.policy.delay_for(attempt)
                    logger.info(
                        "Retry attempt %d/%d for %s after %.2fs: %s",
                        attempt,
                        self.policy.max_attempts,
                        self.breaker.name,
                        delay,
                        e,
                    )
                    if delay > 0:
                        self._sleep(delay)
                continue
            self.breaker.record_success()
            return result

        logger.warning(
            "%s failed after %d attempts: %s", self.breaker.name, self.policy.max_attempts, last_error
        )
        # one failure per call, however many attempts it took
        self.breaker.record_failure(last_error)
        return Fallback(reason="retries_exhausted")


def resilient(gateway: ResilientCallGateway):
    """Decorator form of ``gateway.call``.

    Example:
        @resilient(patients_gateway)
        def list_patients():
            ...
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return gateway.call(func, *args, **kwargs)

        return wrapper

    return decorator
