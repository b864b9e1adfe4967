"""Retrying async operations with exponential backoff.

Operations are passed in as zero-argument coroutine functions:

    await retry_with_backoff(lambda: runner.run("push", "origin", tag), policy)
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

T = TypeVar("T")

BACKOFF_JITTER = 0.1

_RETRYABLE_MARKERS = (
    # network
    "econnreset",
    "etimedout",
    "enotfound",
    "socket hang up",
    "timed out",
    "connection reset",
    # HTTP
    "429",
    "502",
    "503",
    "504",
    # git
    "could not read from remote repository",
    "connection timed out",
)


class RetryPolicy(BaseModel):
    """How often and how long to wait between attempts.

    Attributes:
        max_attempts: Total attempts including the first one.
        initial_delay: Seconds to wait after the first failure.
        max_delay: Upper bound for any single wait, in seconds.
        backoff_base: Growth factor of the delay per attempt.
        jitter: Randomize each delay by ±10%.
    """

    max_attempts: int = Field(default=3, gt=0)
    initial_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    backoff_base: float = Field(default=2.0, ge=1)
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        delay = self.initial_delay * self.backoff_base ** (attempt - 1)
        if self.jitter:
            delay += (random.random() * 2 - 1) * delay * BACKOFF_JITTER
        return min(delay, self.max_delay)


def is_retryable_error(error: BaseException) -> bool:
    """Whether an error looks transient (network, rate limit, remote hiccup)."""
    message = str(error).lower()
    return any(marker in message for marker in _RETRYABLE_MARKERS)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    should_retry: Callable[[Exception], bool] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await operation() until it succeeds or the policy gives up.

    Args:
        operation: Zero-argument coroutine function to call.
        policy: Attempts and delays, defaults to RetryPolicy().
        should_retry: Predicate on the raised error; a False answer
            re-raises immediately instead of retrying.
        sleep: Awaitable sleep, replaceable in tests.

    Raises:
        Exception: The last error once attempts are exhausted.
    """
    policy = policy or RetryPolicy()
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if should_retry is not None and not should_retry(exc):
                raise
            if attempt == policy.max_attempts:
                logger.error("Failed after %d attempts: %s", policy.max_attempts, exc)
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Attempt %d/%d failed: %s; retrying in %.1fs",
                attempt,
                policy.max_attempts,
                exc,
                delay,
            )
            await sleep(delay)
    raise AssertionError("unreachable")


async def retry_on_retryable_errors(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Like retry_with_backoff, but only transient errors are retried."""
    return await retry_with_backoff(
        operation, policy, should_retry=is_retryable_error, sleep=sleep
    )
