"""
Retry and timeout helpers for calls to external services.

Every network-bound step of a pipeline run goes through these two wrappers:
- with_retry(): bounded retries with backoff, driven by a retry predicate
- with_timeout(): races an operation against a deadline

Retry classification is structured first (HTTP status code, timeout and
transport exception types, provider error tags). Matching keywords in the
error message is a best-effort fallback, not an exhaustive list.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = {429, 502, 503, 504}
NON_RETRYABLE_STATUS_CODES = {400, 401, 403, 404}

RETRYABLE_ERROR_TAGS = {"rate_limit_error", "rate_limit_exceeded"}

RETRYABLE_MESSAGE_KEYWORDS = (
    "rate limit",
    "too many requests",
    "service unavailable",
    "timeout",
    "timed out",
    "econnreset",
    "connection reset",
    "etimedout",
)

# Backoff schedule relative to the base delay. With the default 2000ms base
# this gives: immediate, 2s, 5s, 10s, 15s.
BACKOFF_FACTORS = (0.0, 1.0, 2.5, 5.0, 7.5)


class OperationTimeoutError(TimeoutError):
    """Raised by with_timeout() when the deadline elapses first."""


@dataclass
class RetryOptions:
    """Retry policy for with_retry()."""
    max_retries: int = 3
    base_delay_ms: int = 2000
    max_delay_ms: int = 10000
    should_retry: Optional[Callable[[BaseException], bool]] = None


def get_error_status(error: BaseException) -> Optional[int]:
    """Extract an HTTP status code from an exception, if it carries one."""
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value

    response = getattr(error, "response", None)
    if response is not None:
        value = getattr(response, "status_code", None)
        if isinstance(value, int):
            return value

    return None


def is_retryable_error(error: BaseException) -> bool:
    """
    Decide whether a failed call is worth retrying.

    - Retryable: 429, 502, 503, 504, timeouts, transport failures, rate limits
    - Non-retryable: 400, 401, 403, 404 and anything unclassified
    """
    status = get_error_status(error)
    if status is not None:
        if status in NON_RETRYABLE_STATUS_CODES:
            return False
        if status in RETRYABLE_STATUS_CODES:
            return True

    if isinstance(error, (TimeoutError, httpx.TimeoutException, httpx.NetworkError)):
        return True

    for attr in ("type", "code"):
        if getattr(error, attr, None) in RETRYABLE_ERROR_TAGS:
            return True

    message = str(error).lower()
    if any(keyword in message for keyword in RETRYABLE_MESSAGE_KEYWORDS):
        return True

    return False


def calculate_delay_ms(attempt: int, base_delay_ms: int, max_delay_ms: int) -> float:
    """Delay to wait after the given (0-based) failed attempt."""
    if attempt < len(BACKOFF_FACTORS):
        delay = base_delay_ms * BACKOFF_FACTORS[attempt]
    else:
        delay = base_delay_ms * (2 ** (attempt - 1))
    return min(delay, max_delay_ms)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
) -> T:
    """
    Run an async operation, retrying retryable failures with backoff.

    The operation is invoked at most max_retries + 1 times. Non-retryable
    errors, and the last error once retries are exhausted, propagate unchanged.
    """
    opts = options or RetryOptions()
    should_retry = opts.should_retry or is_retryable_error
    total_attempts = opts.max_retries + 1

    for attempt in range(total_attempts):
        try:
            return await operation()
        except Exception as e:
            if not should_retry(e):
                logger.warning(
                    f"Non-retryable error on attempt {attempt + 1}/{total_attempts}, "
                    f"failing immediately: {e}"
                )
                raise

            if attempt >= opts.max_retries:
                logger.error(f"All {total_attempts} retry attempts exhausted: {e}")
                raise

            delay_ms = calculate_delay_ms(attempt, opts.base_delay_ms, opts.max_delay_ms)
            logger.warning(
                f"Retryable error on attempt {attempt + 1}/{total_attempts} "
                f"(status={get_error_status(e)}), retrying in {delay_ms:.0f}ms: {e}"
            )
            if delay_ms > 0:
                await asyncio.sleep(delay_ms / 1000)

    raise RuntimeError("with_retry exited without a result")


def _consume_outcome(task: "asyncio.Future[Any]") -> None:
    # An abandoned operation may still fail later; read its outcome so the
    # event loop does not report it as never retrieved.
    if not task.cancelled():
        task.exception()


async def with_timeout(
    operation: Callable[[], Awaitable[T]],
    timeout_ms: float,
    message: str = "Operation timed out",
) -> T:
    """
    Race an async operation against a deadline.

    On timeout the caller stops waiting and gets OperationTimeoutError, but the
    operation itself is not cancelled and keeps running in the background.
    """
    task = asyncio.ensure_future(operation())
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        if task.done():
            # The operation settled as the deadline fired: its own outcome wins
            return task.result()
        task.add_done_callback(_consume_outcome)
        raise OperationTimeoutError(message) from None
