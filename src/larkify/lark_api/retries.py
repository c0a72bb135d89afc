"""Retry decision logic, exponential backoff, and a generic retry helper.

* :func:`is_retryable` / :func:`should_retry` -- decide whether a failed
  request is retried.
* :func:`compute_backoff` -- compute the delay before the next attempt.
* :func:`retry_async` -- run a coroutine factory under a retry policy.

Backoff doubles per attempt up to a cap, with plus/minus 25 % jitter.  A
server-supplied rate-limit reset hint overrides the computed delay exactly.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from larkify.errors import LarkifyApiError, LarkifyRateLimitError

T = TypeVar("T")

# HTTP status codes that are safe to retry.
_RETRYABLE_STATUSES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

# Network-level exceptions that warrant a retry.
_RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
)


def is_retryable(exception: BaseException) -> bool:
    """Return ``True`` for failures that may succeed on a later attempt.

    Rate-limit errors, network errors and 5xx responses are retryable.
    Every other API error (invalid parameter, permission denied, ...) is
    permanent.
    """
    if isinstance(exception, LarkifyRateLimitError):
        return True
    if isinstance(exception, _RETRYABLE_EXCEPTIONS):
        return True
    if isinstance(exception, LarkifyApiError):
        return exception.status_code in _RETRYABLE_STATUSES
    return False


def should_retry(exception: BaseException, attempt: int, max_attempts: int) -> bool:
    """Decide whether a failed attempt should be retried.

    Parameters
    ----------
    exception:
        The exception raised by the attempt.
    attempt:
        The current attempt number (0-indexed).
    max_attempts:
        Maximum total attempts allowed (including the initial request).
    """
    if attempt + 1 >= max_attempts:
        return False
    return is_retryable(exception)


def compute_backoff(
    attempt: int,
    base: float = 1.0,
    maximum: float = 30.0,
    jitter: bool = True,
    retry_after: float | None = None,
) -> float:
    """Compute the delay before the next retry attempt.

    When *retry_after* is given it is returned unchanged.  Otherwise the
    delay is ``base * 2**attempt`` capped at *maximum*, scaled by a random
    factor in ``[0.75, 1.25)`` when *jitter* is enabled.

    Parameters
    ----------
    attempt:
        The current attempt number (0-indexed).
    base:
        Base delay in seconds.
    maximum:
        Maximum delay cap in seconds (applied before jitter).
    jitter:
        Whether to apply random jitter.
    retry_after:
        Server-directed wait in seconds, if present.
    """
    if retry_after is not None:
        return max(retry_after, 0.0)

    delay = min(base * (2 ** attempt), maximum)
    if jitter:
        delay *= 0.75 + random.random() * 0.5
    return delay


def rate_limit_delay(exception: BaseException) -> float | None:
    """Delay override for :func:`retry_async`: the rate-limit reset hint."""
    if isinstance(exception, LarkifyRateLimitError):
        return exception.retry_after
    return None


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    jitter: bool = True,
    retry_if: Callable[[BaseException, int, int], bool] = should_retry,
    delay_override: Callable[[BaseException], float | None] = rate_limit_delay,
    on_retry: Callable[[BaseException, int, float], None] | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> T:
    """Await ``operation()`` until it succeeds or the policy gives up.

    Parameters
    ----------
    operation:
        Zero-argument callable returning a fresh awaitable per attempt.
    max_attempts:
        Total attempts, including the first.
    base_delay, max_delay, jitter:
        Backoff parameters, see :func:`compute_backoff`.
    retry_if:
        ``(exception, attempt, max_attempts) -> bool``.  When it returns
        ``False`` the exception propagates unchanged.
    delay_override:
        ``exception -> seconds or None``.  A non-``None`` value replaces the
        computed backoff.
    on_retry:
        Called with ``(exception, attempt, delay)`` before each sleep.
    sleep:
        Sleep coroutine.  Defaults to :func:`asyncio.sleep`.

    Returns
    -------
    T
        The first successful result.
    """
    sleep = sleep or asyncio.sleep
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not retry_if(exc, attempt, max_attempts):
                raise
            delay = compute_backoff(
                attempt,
                base=base_delay,
                maximum=max_delay,
                jitter=jitter,
                retry_after=delay_override(exc),
            )
            if on_retry is not None:
                on_retry(exc, attempt, delay)
            await sleep(delay)
            attempt += 1
