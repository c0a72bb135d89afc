"""Metrics hook protocol and no-op default implementation.

larkify emits counters and timings around API requests, retries, block
creation and media uploads.  By default a :class:`NoopMetricsHook` is used;
supply any object satisfying :class:`MetricsHook` to route the data points
to StatsD, Prometheus or similar.

Emitted metric names:

* ``larkify.requests_total``            -- counter
* ``larkify.retries_total``             -- counter
* ``larkify.rate_limited_total``        -- counter
* ``larkify.request_duration_ms``       -- timing
* ``larkify.rate_limit_wait_ms``        -- timing
* ``larkify.blocks_created_total``      -- counter
* ``larkify.upload_success_total``      -- counter
* ``larkify.upload_failure_total``      -- counter
* ``larkify.conversion_warnings_total`` -- counter
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    All methods accept an optional *tags* dict of string keys and values.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to an absolute value."""
        ...


class NoopMetricsHook:
    """Default metrics implementation that discards all data points."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass
