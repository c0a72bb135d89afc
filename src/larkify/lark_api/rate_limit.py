"""Client-side request pacing.

:class:`AsyncTokenBucket` refills at a fixed rate up to a burst ceiling.
Callers that find the bucket empty reserve the next free slot and sleep
until it comes due, so concurrent callers are served in arrival order.
A rate-limit response from the server can :meth:`~AsyncTokenBucket.pause`
the whole bucket until the advertised reset time.
"""

from __future__ import annotations

import asyncio
import time


class AsyncTokenBucket:
    """Async-safe token bucket with server-directed pauses.

    Parameters
    ----------
    rate_rps:
        Sustained token-refill rate in tokens per second.
    burst:
        Maximum number of tokens the bucket can hold.
    """

    __slots__ = ("_lock", "burst", "last_refill", "paused_until", "rate", "tokens")

    def __init__(self, rate_rps: float, burst: int = 10) -> None:
        if rate_rps <= 0:
            raise ValueError(f"rate_rps must be > 0, got {rate_rps}")
        if burst < 1:
            raise ValueError(f"burst must be >= 1, got {burst}")

        self.rate: float = rate_rps
        self.burst: int = burst
        self.tokens: float = float(burst)
        self.last_refill: float = time.monotonic()
        self.paused_until: float = 0.0
        self._lock = asyncio.Lock()

    def pause(self, seconds: float) -> None:
        """Hold every caller back for *seconds* from now."""
        if seconds <= 0:
            return
        self.paused_until = max(self.paused_until, time.monotonic() + seconds)

    async def acquire(self, tokens: int = 1) -> float:
        """Take *tokens*, awaiting if necessary.

        Returns the number of seconds the caller waited.
        """
        async with self._lock:
            now = time.monotonic()
            self.tokens = min(self.burst, self.tokens + (now - self.last_refill) * self.rate)
            self.last_refill = now

            wait = max(self.paused_until - now, 0.0)
            # Tokens may go negative: the debt is the reservation queue.
            self.tokens -= tokens
            if self.tokens < 0:
                wait = max(wait, -self.tokens / self.rate)

        if wait > 0:
            await asyncio.sleep(wait)
        return wait
