"""
Tests for the retry and timeout helpers.
"""

import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock, patch

from animation_engine.utils.retry import (
    OperationTimeoutError,
    RetryOptions,
    calculate_delay_ms,
    get_error_status,
    is_retryable_error,
    with_retry,
    with_timeout,
)


class StatusError(Exception):
    """Provider-style error carrying an HTTP status."""

    def __init__(self, status: int, message: str = "provider error"):
        super().__init__(message)
        self.status = status


FAST = RetryOptions(max_retries=3, base_delay_ms=1, max_delay_ms=5)


# =============================================================================
# Error classification
# =============================================================================

class TestIsRetryableError:

    @pytest.mark.parametrize("status", [429, 502, 503, 504])
    def test_retryable_status_codes(self, status):
        assert is_retryable_error(StatusError(status)) is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_non_retryable_status_codes(self, status):
        assert is_retryable_error(StatusError(status)) is False

    def test_status_wins_over_message(self):
        """A 400 mentioning a timeout is still a client error."""
        assert is_retryable_error(StatusError(400, "request timeout parameter invalid")) is False

    def test_timeouts_are_retryable(self):
        assert is_retryable_error(OperationTimeoutError("slow")) is True
        assert is_retryable_error(httpx.ReadTimeout("read timed out")) is True

    def test_network_errors_are_retryable(self):
        assert is_retryable_error(httpx.ConnectError("connection refused")) is True

    def test_rate_limit_tag(self):
        error = Exception("quota")
        error.type = "rate_limit_error"
        assert is_retryable_error(error) is True

    def test_message_keyword_fallback(self):
        assert is_retryable_error(Exception("ECONNRESET by peer")) is True
        assert is_retryable_error(Exception("Too Many Requests")) is True

    def test_unclassified_error_is_not_retryable(self):
        assert is_retryable_error(ValueError("bad prompt")) is False

    def test_status_from_response_attribute(self):
        error = Exception("boom")
        error.response = httpx.Response(503)
        assert get_error_status(error) == 503
        assert is_retryable_error(error) is True


class TestCalculateDelay:

    def test_default_schedule(self):
        delays = [calculate_delay_ms(attempt, 2000, 60000) for attempt in range(5)]
        assert delays == [0, 2000, 5000, 10000, 15000]

    def test_capped_by_max_delay(self):
        assert calculate_delay_ms(4, 2000, 10000) == 10000

    def test_beyond_schedule_grows(self):
        assert calculate_delay_ms(6, 100, 100000) > calculate_delay_ms(4, 100, 100000)


# =============================================================================
# with_retry
# =============================================================================

class TestWithRetry:

    @pytest.mark.asyncio
    async def test_succeeds_after_two_rate_limits(self):
        operation = AsyncMock(side_effect=[StatusError(429), StatusError(429), "ok"])

        result = await with_retry(operation, FAST)

        assert result == "ok"
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_bad_request_is_not_retried(self):
        error = StatusError(400)
        operation = AsyncMock(side_effect=error)

        with pytest.raises(StatusError) as exc_info:
            await with_retry(operation, FAST)

        assert exc_info.value is error
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_error(self):
        operation = AsyncMock(side_effect=[StatusError(503, f"attempt {i}") for i in range(4)])

        with pytest.raises(StatusError, match="attempt 3"):
            await with_retry(operation, FAST)

        assert operation.await_count == 4

    @pytest.mark.asyncio
    async def test_zero_retries_calls_once(self):
        operation = AsyncMock(side_effect=StatusError(503))

        with pytest.raises(StatusError):
            await with_retry(operation, RetryOptions(max_retries=0, base_delay_ms=1))

        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_custom_predicate(self):
        operation = AsyncMock(side_effect=[KeyError("x"), "ok"])
        options = RetryOptions(max_retries=1, base_delay_ms=1, should_retry=lambda e: isinstance(e, KeyError))

        assert await with_retry(operation, options) == "ok"

    @pytest.mark.asyncio
    async def test_sleeps_between_attempts(self):
        operation = AsyncMock(side_effect=[StatusError(429), StatusError(429), "ok"])
        options = RetryOptions(max_retries=3, base_delay_ms=2000, max_delay_ms=10000)

        with patch("animation_engine.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            await with_retry(operation, options)

        # First retry is immediate, second waits the base delay
        sleep.assert_awaited_once_with(2.0)


# =============================================================================
# with_timeout
# =============================================================================

class TestWithTimeout:

    @pytest.mark.asyncio
    async def test_returns_result_within_deadline(self):
        async def fast():
            return 42

        assert await with_timeout(fast, 1000) == 42

    @pytest.mark.asyncio
    async def test_raises_on_deadline(self):
        async def slow():
            await asyncio.sleep(1)
            return "late"

        with pytest.raises(OperationTimeoutError, match="too slow"):
            await with_timeout(slow, 10, "too slow")

    @pytest.mark.asyncio
    async def test_timed_out_operation_keeps_running(self):
        finished = asyncio.Event()

        async def slow():
            await asyncio.sleep(0.05)
            finished.set()
            return "done"

        with pytest.raises(OperationTimeoutError):
            await with_timeout(slow, 5)

        await asyncio.wait_for(finished.wait(), timeout=1)
        assert finished.is_set()

    @pytest.mark.asyncio
    async def test_operation_errors_propagate(self):
        async def failing():
            raise StatusError(400)

        with pytest.raises(StatusError):
            await with_timeout(failing, 1000)

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) == 1:
                await asyncio.sleep(0.2)
            return "ok"

        result = await with_retry(lambda: with_timeout(flaky, 20), FAST)

        assert result == "ok"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_result_settled_at_deadline_is_returned(self):
        async def fast():
            return 42

        async def deadline_fires_after_completion(awaitable, timeout):
            await awaitable
            raise asyncio.TimeoutError

        with patch("animation_engine.utils.retry.asyncio.wait_for", new=deadline_fires_after_completion):
            assert await with_timeout(fast, 1000) == 42

    @pytest.mark.asyncio
    async def test_error_settled_at_deadline_is_raised(self):
        async def failing():
            raise StatusError(400)

        async def deadline_fires_after_completion(awaitable, timeout):
            try:
                await awaitable
            except StatusError:
                pass
            raise asyncio.TimeoutError

        with patch("animation_engine.utils.retry.asyncio.wait_for", new=deadline_fires_after_completion):
            with pytest.raises(StatusError):
                await with_timeout(failing, 1000)
