"""
Tests for the upstream-call guards: the circuit breaker and retry backoff.

The breaker runs on a FakeClock so OPEN -> HALF_OPEN needs no real waiting;
its status dict is what /health reports.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from invest_sync.core.resilience import (
    TRANSIENT_ERRORS,
    CircuitBreaker,
    CircuitBreakerError,
    CircuitState,
    backoff_delays,
    retry_with_backoff,
)

from .conftest import FakeClock

# ────────────────────────────────────────────────────────────────────────────
# CircuitBreakerError tests
# ────────────────────────────────────────────────────────────────────────────


class TestCircuitBreakerError:
    def test_attributes(self):
        err = CircuitBreakerError("upstream-api", 5.5)
        assert err.name == "upstream-api"
        assert err.retry_after == 5.5
        assert "upstream-api" in str(err)
        assert "OPEN" in str(err)

    def test_message_usable_as_collection_error(self):
        err = CircuitBreakerError("upstream-api", 1.0)
        assert err.message == str(err)


# ────────────────────────────────────────────────────────────────────────────
# CircuitBreaker tests
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def breaker_clock() -> FakeClock:
    return FakeClock(now=100.0)


@pytest.fixture()
def cb(breaker_clock):
    return CircuitBreaker(
        name="test",
        failure_threshold=2,
        recovery_timeout=5.0,
        expected_exceptions=(ConnectionError,),
        clock=breaker_clock,
    )


async def trip(cb: CircuitBreaker) -> None:
    func = AsyncMock(side_effect=ConnectionError("down"))
    for _ in range(cb.failure_threshold):
        with pytest.raises(ConnectionError):
            await cb.call(func)


class TestCircuitBreakerClosed:
    @pytest.mark.asyncio
    async def test_successful_call(self, cb):
        func = AsyncMock(return_value="ok")
        assert await cb.call(func, 1, key="v") == "ok"
        func.assert_awaited_once_with(1, key="v")
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_failure_below_threshold_stays_closed(self, cb):
        func = AsyncMock(side_effect=ConnectionError("boom"))
        with pytest.raises(ConnectionError):
            await cb.call(func)
        assert cb.state == CircuitState.CLOSED
        assert cb._failure_count == 1

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, cb):
        with pytest.raises(ConnectionError):
            await cb.call(AsyncMock(side_effect=ConnectionError("boom")))
        await cb.call(AsyncMock(return_value="ok"))
        assert cb._failure_count == 0


class TestCircuitBreakerOpen:
    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, cb):
        await trip(cb)
        assert cb.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_open_circuit_fails_fast(self, cb, breaker_clock):
        await trip(cb)
        breaker_clock.advance(2.0)

        success_func = AsyncMock(return_value="ok")
        with pytest.raises(CircuitBreakerError) as exc_info:
            await cb.call(success_func)

        success_func.assert_not_awaited()
        assert exc_info.value.name == "test"
        assert exc_info.value.retry_after == pytest.approx(3.0)


class TestCircuitBreakerHalfOpen:
    @pytest.mark.asyncio
    async def test_transitions_to_half_open_after_timeout(self, cb, breaker_clock):
        await trip(cb)
        breaker_clock.advance(5.0)
        assert cb.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_successful_probe_closes_circuit(self, cb, breaker_clock):
        await trip(cb)
        breaker_clock.advance(5.0)

        result = await cb.call(AsyncMock(return_value="recovered"))

        assert result == "recovered"
        assert cb.state == CircuitState.CLOSED
        assert cb._failure_count == 0

    @pytest.mark.asyncio
    async def test_failed_probe_reopens_circuit(self, cb, breaker_clock):
        await trip(cb)
        breaker_clock.advance(5.0)

        with pytest.raises(ConnectionError):
            await cb.call(AsyncMock(side_effect=ConnectionError("still down")))

        assert cb.state == CircuitState.OPEN


class TestCircuitBreakerNonExpected:
    @pytest.mark.asyncio
    async def test_unexpected_exception_passes_through(self, cb):
        with pytest.raises(TypeError):
            await cb.call(AsyncMock(side_effect=TypeError("not expected")))
        assert cb._failure_count == 0
        assert cb.state == CircuitState.CLOSED

    def test_transport_errors_are_transient(self):
        assert issubclass(httpx.ConnectError, TRANSIENT_ERRORS)
        assert issubclass(httpx.ReadTimeout, TRANSIENT_ERRORS)


class TestCircuitBreakerGetStatus:
    def test_status_dict(self):
        cb = CircuitBreaker(name="upstream-api", failure_threshold=5, recovery_timeout=30.0)
        assert cb.get_status() == {
            "name": "upstream-api",
            "state": "closed",
            "failure_count": 0,
            "failure_threshold": 5,
            "recovery_timeout_s": 30.0,
        }


# ────────────────────────────────────────────────────────────────────────────
# retry_with_backoff tests
# ────────────────────────────────────────────────────────────────────────────


class TestBackoffDelays:
    def test_doubles_then_caps(self):
        assert list(backoff_delays(5, 0.5, 3.0, jitter=False)) == [0.5, 1.0, 2.0, 3.0, 3.0]

    def test_jitter_adds_at_most_half(self):
        for delay in backoff_delays(10, 1.0, 1.0, jitter=True):
            assert 1.0 <= delay <= 1.5

    def test_zero_retries_yields_nothing(self):
        assert list(backoff_delays(0, 1.0, 10.0)) == []


class Flaky:
    """Upstream stand-in whose ``attempt`` raises ``errors`` in order, then returns ``"ok"``."""

    def __init__(self, *errors: Exception):
        self.errors = list(errors)
        self.calls = 0

    async def attempt(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def no_wait(max_retries: int, **kwargs):
    return retry_with_backoff(
        max_retries=max_retries,
        base_delay=0.0,
        jitter=False,
        retryable_exceptions=(ConnectionError,),
        **kwargs,
    )


class TestRetryWithBackoff:
    @pytest.mark.asyncio
    async def test_recovers_within_budget(self):
        flaky = Flaky(ConnectionError("down"), ConnectionError("down"))
        assert await no_wait(3)(flaky.attempt)() == "ok"
        assert flaky.calls == 3

    @pytest.mark.asyncio
    async def test_last_error_propagates_when_budget_spent(self):
        flaky = Flaky(*(ConnectionError(f"attempt {i}") for i in range(1, 4)))
        with pytest.raises(ConnectionError, match="attempt 3"):
            await no_wait(2)(flaky.attempt)()
        assert flaky.calls == 3

    @pytest.mark.asyncio
    async def test_zero_retries_means_one_attempt(self):
        flaky = Flaky(ConnectionError("down"))
        with pytest.raises(ConnectionError):
            await no_wait(0)(flaky.attempt)()
        assert flaky.calls == 1

    @pytest.mark.asyncio
    async def test_upstream_rejection_is_not_retried(self):
        flaky = Flaky(ValueError("bad payload"))
        with pytest.raises(ValueError):
            await no_wait(3)(flaky.attempt)()
        assert flaky.calls == 1

    @pytest.mark.asyncio
    async def test_sleeps_follow_backoff_schedule(self):
        flaky = Flaky(*(ConnectionError("down") for _ in range(5)))
        wrapped = retry_with_backoff(
            max_retries=4,
            base_delay=1.0,
            max_delay=3.0,
            jitter=False,
            retryable_exceptions=(ConnectionError,),
        )(flaky.attempt)

        with patch("invest_sync.core.resilience.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(ConnectionError):
                await wrapped()

        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 3.0, 3.0]
