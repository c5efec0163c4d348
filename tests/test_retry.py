"""Tests for the retry executor and the rate limiter."""

import sys
import os

import pytest
from unittest.mock import AsyncMock

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from library_sync.utils.errors import ClassifiedError, ErrorKind, api_error, config_error, playlist_error
from library_sync.utils.rate_limit import AsyncRateLimiter
from library_sync.utils.retry import RetryExecutor, RetryPolicy


class RecordingSleep:
    """Stands in for asyncio.sleep and records the requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class TestRetryPolicy:
    """Test the backoff schedule."""

    def test_default_schedule(self):
        policy = RetryPolicy()

        assert policy.max_retries == 3
        assert policy.delay_for(0) == 1.0
        assert policy.delay_for(1) == 2.0
        assert policy.delay_for(2) == 4.0

    def test_custom_schedule(self):
        policy = RetryPolicy(initial_delay=0.5, backoff_factor=3.0)
        assert [policy.delay_for(n) for n in range(3)] == [0.5, 1.5, 4.5]


class TestRetryExecutor:
    """Test retry behaviour."""

    def setup_method(self):
        self.sleep = RecordingSleep()
        self.retries = []
        self.executor = RetryExecutor(
            sleep=self.sleep,
            on_retry=lambda error, attempt: self.retries.append((error.status_code, attempt))
        )

    @pytest.mark.asyncio
    async def test_success_returns_immediately(self):
        operation = AsyncMock(return_value="ok")

        assert await self.executor.execute(operation) == "ok"
        assert operation.await_count == 1
        assert self.sleep.delays == []

    @pytest.mark.asyncio
    async def test_persistent_failure_uses_three_attempts(self):
        error = api_error("Service Unavailable", 503)
        operation = AsyncMock(side_effect=error)

        with pytest.raises(ClassifiedError) as exc_info:
            await self.executor.execute(operation)

        assert exc_info.value is error
        assert operation.await_count == 3
        assert self.sleep.delays == [1.0, 2.0]
        assert self.retries == [(503, 1), (503, 2)]

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self):
        operation = AsyncMock(side_effect=[api_error("Bad Gateway", 502), "done"])

        assert await self.executor.execute(operation) == "done"
        assert operation.await_count == 2
        assert self.sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_non_retryable_kind_short_circuits(self):
        error = config_error("Missing client id")
        operation = AsyncMock(side_effect=error)

        with pytest.raises(ClassifiedError) as exc_info:
            await self.executor.execute(operation)

        assert exc_info.value is error
        assert operation.await_count == 1
        assert self.sleep.delays == []

    @pytest.mark.asyncio
    async def test_raw_exception_is_classified_and_retried(self):
        operation = AsyncMock(side_effect=[ConnectionResetError("reset by peer"), 42])

        assert await self.executor.execute(operation) == 42
        assert self.retries == [(500, 1)]

    @pytest.mark.asyncio
    async def test_empty_message_still_propagates(self):
        operation = AsyncMock(side_effect=RuntimeError())

        with pytest.raises(ClassifiedError) as exc_info:
            await self.executor.execute(operation)

        assert exc_info.value.message == "Unknown error (RuntimeError)"
        assert isinstance(exc_info.value.cause, RuntimeError)

    @pytest.mark.asyncio
    async def test_zero_retries_never_invokes(self):
        operation = AsyncMock()

        with pytest.raises(ClassifiedError) as exc_info:
            await self.executor.execute(operation, policy=RetryPolicy(max_retries=0))

        assert operation.await_count == 0
        assert exc_info.value.kind is ErrorKind.API
        assert exc_info.value.message == "Retry failed with no error"

    @pytest.mark.asyncio
    async def test_policy_override_retryable_kinds(self):
        policy = RetryPolicy(retryable_kinds=frozenset({ErrorKind.API, ErrorKind.PLAYLIST_MUTATION}))
        operation = AsyncMock(side_effect=[playlist_error("Snapshot conflict"), "ok"])

        assert await self.executor.execute(operation, policy=policy) == "ok"
        assert operation.await_count == 2


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestAsyncRateLimiter:
    """Test client-side rate limiting."""

    @pytest.mark.asyncio
    async def test_calls_within_limit_pass(self):
        clock = FakeClock()
        limiter = AsyncRateLimiter(max_calls=3, time_window=10.0, clock=clock)

        for _ in range(3):
            async with limiter.limit():
                pass

        assert len(limiter.calls) == 3

    @pytest.mark.asyncio
    async def test_window_expiry_frees_slots(self):
        clock = FakeClock()
        limiter = AsyncRateLimiter(max_calls=2, time_window=10.0, clock=clock)

        await limiter.acquire()
        await limiter.acquire()
        clock.now = 10.5
        await limiter.acquire()

        assert limiter.calls == [10.5]

    def test_invalid_max_calls(self):
        with pytest.raises(ValueError):
            AsyncRateLimiter(max_calls=0, time_window=1.0)
