"""
Retry utility with exponential backoff and jitter for outbound service calls.

Only transient errors are retried:
- Network-level failures (connection refused/reset, timeouts, DNS failures)
- HTTP 429 Too Many Requests
- HTTP 502 Bad Gateway, 503 Service Unavailable, 504 Gateway Timeout

Never retried:
- Client errors (4xx other than 429)
- Configuration errors (service missing, disabled, no credential)
- Business-logic failures

Delay formula: ``min(max_delay, base_delay * 2**attempt)`` plus up to 25% jitter.
"""
import asyncio
import random
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from mediahub.core.config import settings
from mediahub.core.logging_config import LogCategory, log_debug, log_warning

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})

# Message fragments that identify network-level failures raised as plain exceptions
NETWORK_ERROR_PATTERNS = (
    "econnrefused",
    "econnreset",
    "etimedout",
    "enotfound",
    "connection refused",
    "connection reset",
    "connection aborted",
    "timed out",
    "name or service not known",
    "temporary failure in name resolution",
    "nodename nor servname",
    "network",
)

JITTER_RATIO = 0.25


def is_transient_error(error: BaseException, attempt: int = 0) -> bool:
    """
    Determine whether an error is worth retrying.

    Args:
        error: The exception raised by the attempt
        attempt: Zero-based attempt number (unused by the default classifier)
    """
    # Imported here to avoid a cycle: integrations.errors logs through core
    from mediahub.integrations.errors import ServiceClientError, ServiceConfigurationError

    if isinstance(error, ServiceConfigurationError):
        return False

    if isinstance(error, ServiceClientError):
        if error.status_code is not None:
            return error.status_code in RETRYABLE_STATUS_CODES
        return False

    # httpx raises TransportError for connect/read/write failures and timeouts
    if isinstance(error, httpx.TransportError):
        return True

    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RETRYABLE_STATUS_CODES

    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True

    message = str(error).lower()
    return any(pattern in message for pattern in NETWORK_ERROR_PATTERNS)


def calculate_backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """
    Calculate the delay before the next attempt, in seconds.

    Args:
        attempt: Zero-based attempt number that just failed
        base_delay: Delay before the first retry
        max_delay: Cap applied before jitter is added
    """
    capped_delay = min(max_delay, base_delay * (2 ** attempt))
    jitter = random.uniform(0, capped_delay * JITTER_RATIO)
    return capped_delay + jitter


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry configuration for a single call.

    Fields:
        max_retries: Retries after the first attempt (3 means up to 4 tries)
        base_delay: Seconds before the first retry
        max_delay: Upper bound on the unjittered delay
        should_retry: Classifier ``(error, attempt) -> bool``
        on_retry: Observer ``(error, next_attempt, delay)`` called before each sleep
    """
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    should_retry: Callable[[BaseException, int], bool] = is_transient_error
    on_retry: Optional[Callable[[BaseException, int, float], None]] = None

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_retries=settings.retry_max_retries,
            base_delay=settings.retry_base_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        )


async def _sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    **overrides,
) -> T:
    """
    Run an async operation, retrying transient failures with backoff.

    Args:
        operation: Zero-argument coroutine function, called once per attempt
        policy: Retry configuration (defaults to RetryPolicy())
        **overrides: Field overrides applied on top of the policy

    Returns:
        The operation's result

    Raises:
        The last error, unchanged, once it is not retryable or retries are exhausted

    Example:
        result = await with_retry(lambda: client.get(url), max_retries=5)
    """
    policy = policy or RetryPolicy()
    if overrides:
        policy = replace(policy, **overrides)

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as error:
            can_retry = attempt < policy.max_retries and policy.should_retry(error, attempt)
            if not can_retry:
                log_debug(
                    "Not retrying, raising error",
                    category=LogCategory.RETRY,
                    error=str(error),
                    attempt=attempt,
                )
                raise

            delay = calculate_backoff_delay(attempt, policy.base_delay, policy.max_delay)
            log_warning(
                "Retrying after transient error",
                category=LogCategory.RETRY,
                error=str(error),
                attempt=attempt,
                delay_seconds=round(delay, 3),
            )

            if policy.on_retry is not None:
                policy.on_retry(error, attempt + 1, delay)

            await _sleep(delay)
            attempt += 1


def create_retry_wrapper(default_policy: RetryPolicy):
    """
    Create a retry helper with pre-configured options.

    Example:
        retry_slowly = create_retry_wrapper(RetryPolicy(max_retries=5, base_delay=2.0))
        result = await retry_slowly(fetch_queue)
    """

    async def _wrapper(operation: Callable[[], Awaitable[T]], **overrides) -> T:
        return await with_retry(operation, default_policy, **overrides)

    return _wrapper
