"""
Fault tolerance for calls to the upstream REST API.

1. **Circuit Breaker**: after ``failure_threshold`` consecutive transport
   failures the breaker opens and every call fails fast with
   :class:`CircuitBreakerError` until ``recovery_timeout`` has elapsed; then a
   single probe call is let through (HALF_OPEN).  A successful probe closes
   the breaker, a failed one re-opens it.

2. **Retry with exponential backoff**: transient transport errors are retried
   a bounded number of times with doubling, jittered delays.

The fetch orchestration treats whatever finally escapes (the last transport
error, an :class:`UpstreamError`, or a ``CircuitBreakerError``) as an ordinary
fetch failure and records it on the collection.
"""

import asyncio
import functools
import logging
import random
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Iterator, Tuple, Type

import httpx

from invest_sync.core.config import settings

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: Tuple[Type[Exception], ...] = (httpx.TransportError, ConnectionError, TimeoutError)


# ────────────────────────────────────────────────────────────────────────────
# Circuit Breaker
# ────────────────────────────────────────────────────────────────────────────


class CircuitState(str, Enum):
    """Possible states of a circuit breaker."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """Raised when a call is rejected because the circuit is open."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        self.message = (
            f"{name} is unavailable (circuit OPEN). Retry after {retry_after:.1f}s."
        )
        super().__init__(self.message)


class CircuitBreaker:
    """
    Async circuit breaker guarding one dependency.

    Parameters
    ----------
    name : str
        Identifier used in logs and in :class:`CircuitBreakerError`.
    failure_threshold : int
        Consecutive failures that open the circuit.
    recovery_timeout : float
        Seconds spent OPEN before a probe is allowed.
    expected_exceptions : tuple
        Exception types that count as failures; anything else propagates
        without touching the counters.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        expected_exceptions: Tuple[Type[Exception], ...] = (Exception,),
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exceptions = expected_exceptions
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float = 0.0

    @property
    def state(self) -> CircuitState:
        """Current state; an OPEN circuit turns HALF_OPEN once the timeout elapses."""
        if self._state == CircuitState.OPEN:
            if self._clock() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                logger.info("Circuit '%s' -> HALF_OPEN", self.name)
        return self._state

    def _on_success(self) -> None:
        if self._state != CircuitState.CLOSED:
            logger.info("Circuit '%s' -> CLOSED after successful probe", self.name)
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def _on_failure(self) -> None:
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            self._opened_at = self._clock()
            logger.error(
                "Circuit '%s' -> OPEN after %d consecutive failures; failing fast for %.1fs",
                self.name,
                self._failure_count,
                self.recovery_timeout,
            )
        else:
            logger.warning(
                "Circuit '%s' failure %d/%d",
                self.name,
                self._failure_count,
                self.failure_threshold,
            )

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Await ``func`` through the breaker; raises :class:`CircuitBreakerError` when OPEN."""
        if self.state == CircuitState.OPEN:
            retry_after = self.recovery_timeout - (self._clock() - self._opened_at)
            raise CircuitBreakerError(self.name, max(retry_after, 0.0))

        try:
            result = await func(*args, **kwargs)
        except self.expected_exceptions:
            self._on_failure()
            raise
        self._on_success()
        return result

    def get_status(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout_s": self.recovery_timeout,
        }


upstream_circuit_breaker = CircuitBreaker(
    name="upstream-api",
    failure_threshold=settings.CB_FAILURE_THRESHOLD,
    recovery_timeout=settings.CB_RECOVERY_TIMEOUT,
    expected_exceptions=TRANSIENT_ERRORS,
)


# ────────────────────────────────────────────────────────────────────────────
# Retry with Exponential Backoff
# ────────────────────────────────────────────────────────────────────────────


def backoff_delays(
    retries: int, base_delay: float, max_delay: float, jitter: bool = True
) -> Iterator[float]:
    """Yield the sleep before each retry: doubling from ``base_delay``, capped, jittered."""
    delay = base_delay
    for _ in range(retries):
        capped = min(delay, max_delay)
        yield capped + random.uniform(0, capped * 0.5) if jitter else capped
        delay *= 2


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[Exception], ...] = TRANSIENT_ERRORS,
) -> Callable:
    """
    Decorator: retry an async function on ``retryable_exceptions``.

    ``max_retries`` counts retries after the first attempt (0 means a single
    attempt); the waits come from :func:`backoff_delays`.  Non-retryable
    exceptions propagate immediately, and the last retryable one propagates
    once retries run out.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            delays = backoff_delays(max_retries, base_delay, max_delay, jitter)
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as exc:
                    wait = next(delays, None)
                    if wait is None:
                        logger.error(
                            "Giving up on %s after %d retries: %r", func.__qualname__, attempt, exc
                        )
                        raise
                    attempt += 1
                    logger.warning(
                        "%s failed (%r); retry %d/%d in %.2fs",
                        func.__qualname__,
                        exc,
                        attempt,
                        max_retries,
                        wait,
                    )
                await asyncio.sleep(wait)

        return wrapper

    return decorator
