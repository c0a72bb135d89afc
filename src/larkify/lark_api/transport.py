"""Async HTTP transport for the open-platform API.

Each request goes through the same lifecycle:

1. Obtain a bearer token from the :class:`TenantTokenProvider`.
2. Acquire a token-bucket slot (wait if needed).
3. Send the request through ``httpx.AsyncClient``.
4. Decode the ``{"code": ..., "msg": ..., "data": ...}`` envelope and
   return ``data`` when ``code == 0``.
5. Otherwise raise a typed :class:`LarkifyApiError`.  Rate-limit responses
   carry the ``x-ogw-ratelimit-reset`` hint and pause the bucket.
6. Network errors, 5xx and rate limits are retried by
   :func:`retry_async`; anything else propagates at once.
7. An auth error invalidates the cached tenant token and the request is
   sent once more with a freshly exchanged token.
"""

from __future__ import annotations

import json as _json
import sys
import time
from collections.abc import AsyncIterator
from functools import partial
from typing import Any

import httpx

from larkify.config import LarkifyConfig
from larkify.errors import (
    ErrorCode,
    LarkifyApiError,
    LarkifyError,
    LarkifyNetworkError,
    LarkifyPermissionError,
    LarkifyRateLimitError,
    LarkifyRetryExhaustedError,
    classify_lark_code,
    format_api_failure,
)
from larkify.observability import NoopMetricsHook, get_logger
from larkify.utils.redact import redact

from .auth import TenantTokenProvider
from .rate_limit import AsyncTokenBucket
from .retries import is_retryable, retry_async

log = get_logger("larkify.transport")

RATE_LIMIT_RESET_HEADER = "x-ogw-ratelimit-reset"

_REQUEST_SUMMARY_LIMIT = 2000


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_rate_limit_reset(response: httpx.Response) -> float | None:
    """Extract the rate-limit reset hint (seconds) as a float, or ``None``."""
    raw = response.headers.get(RATE_LIMIT_RESET_HEADER)
    if raw is None:
        return None
    try:
        return float(raw)
    except (ValueError, TypeError):
        return None


def _decode_body(response: httpx.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _summarize_request(payload: Any) -> str | None:
    """Redacted, truncated JSON of a request body for error context."""
    if payload is None:
        return None
    text = _json.dumps(redact({"body": payload})["body"], ensure_ascii=False, default=str)
    if len(text) > _REQUEST_SUMMARY_LIMIT:
        text = text[:_REQUEST_SUMMARY_LIMIT] + "..."
    return text


def _error_for_response(
    response: httpx.Response,
    body: dict[str, Any],
    method: str,
    request_payload: Any,
) -> LarkifyApiError:
    """Build the :class:`LarkifyApiError` subclass matching a failed response."""
    status = response.status_code
    lark_code = body.get("code")
    lark_message = body.get("msg") or response.text[:500]
    url = str(response.url)

    context: dict[str, Any] = {
        "method": method,
        "url": url,
        "status_code": status,
        "lark_code": lark_code,
        "lark_message": lark_message,
        "request": _summarize_request(request_payload),
        "log_id": response.headers.get("x-tt-logid"),
    }
    message = format_api_failure(method, url, status, lark_code, lark_message)
    reason = classify_lark_code(lark_code, status)

    if reason == ErrorCode.RATE_LIMITED:
        context["retry_after"] = _parse_rate_limit_reset(response)
        return LarkifyRateLimitError(message=message, context=context)
    if reason == ErrorCode.PERMISSION_DENIED:
        return LarkifyPermissionError(message=message, context=context)
    return LarkifyApiError(message=message, context=context, code=reason)


def _dump_payload(
    method: str,
    url: str,
    payload: Any | None,
    response_status: int | None,
    response_body: Any | None,
    *secrets: str | None,
) -> None:
    """Write a redacted debug dump of the request/response to stderr."""
    dump: dict[str, Any] = {
        "method": method,
        "url": url,
    }
    if payload is not None:
        dump["request_body"] = payload
    if response_status is not None:
        dump["response_status"] = response_status
    if response_body is not None:
        dump["response_body"] = response_body
    safe_dump = redact(dump, *secrets)
    print(
        _json.dumps(safe_dump, indent=2, default=str, ensure_ascii=False),
        file=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class AsyncLarkTransport:
    """Asynchronous HTTP transport with auth, retry, and rate limiting.

    Parameters
    ----------
    config:
        A :class:`LarkifyConfig` instance controlling all transport behaviour.
    """

    def __init__(self, config: LarkifyConfig) -> None:
        self._config = config
        self._bucket = AsyncTokenBucket(
            rate_rps=config.rate_limit_rps,
            burst=10,
        )
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

        proxy: httpx.URL | str | None = config.http_proxy
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout_seconds),
            proxy=proxy,
        )
        self._auth = TenantTokenProvider(config, self._client)

    # -- public API --------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any | None = None,
        params: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Execute an API request and return the envelope's ``data`` object.

        Parameters
        ----------
        method:
            HTTP method (``GET``, ``POST``, ``PATCH``, ``DELETE``).
        path:
            API path relative to ``base_url``
            (e.g. ``/open-apis/docx/v1/documents``).
        json:
            JSON request body.
        params:
            Query-string parameters.
        files, data:
            Multipart form fields, for media uploads.

        Returns
        -------
        dict
            The ``data`` member of the response envelope (``{}`` if absent).

        Raises
        ------
        LarkifyPermissionError
            On 403 responses or permission-denied business codes.
        LarkifyApiError
            On any other non-retryable failure; ``code`` tells the reason.
        LarkifyRetryExhaustedError
            When rate-limit or 5xx retries are used up.
        LarkifyNetworkError
            On transport-level failures after exhausting retries.
        """
        send = partial(
            self._send_once, method, path,
            json=json, params=params, files=files, data=data,
        )
        try:
            return await self._send_with_retries(method, path, send)
        except LarkifyApiError as exc:
            if exc.code != ErrorCode.AUTH_ERROR or self._config.user_access_token:
                raise
            log.info(
                "Tenant token rejected; retrying once with a fresh token",
                extra={"extra_fields": {"op": "request", "method": method, "path": path}},
            )
            return await self._send_with_retries(method, path, send)

    async def _send_with_retries(
        self, method: str, path: str, send: Any,
    ) -> dict[str, Any]:
        try:
            return await retry_async(
                send,
                max_attempts=self._config.retry_max_attempts,
                base_delay=self._config.retry_base_delay,
                max_delay=self._config.retry_max_delay,
                jitter=self._config.retry_jitter,
                on_retry=partial(self._on_retry, method, path),
            )
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            raise LarkifyNetworkError(
                message=f"Network error on {method} {path}: {exc}",
                context={"method": method, "url": path, "attempts": self._config.retry_max_attempts},
                cause=exc,
            ) from exc
        except LarkifyError as exc:
            if is_retryable(exc):
                raise LarkifyRetryExhaustedError(
                    message=(
                        f"All {self._config.retry_max_attempts} attempts failed "
                        f"for {method} {path}: {exc.message}"
                    ),
                    context={
                        "attempts": self._config.retry_max_attempts,
                        "last_error": exc.code,
                        **exc.context,
                    },
                    cause=exc,
                ) from exc
            raise

    async def paginate(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        page_size: int = 500,
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield every item of a ``page_token``/``has_more`` paginated GET."""
        query = dict(params or {})
        query["page_size"] = page_size
        while True:
            page = await self.request("GET", path, params=query)
            for item in page.get("items") or []:
                yield item
            token = page.get("page_token")
            if not page.get("has_more") or not token:
                return
            query["page_token"] = token

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> AsyncLarkTransport:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # -- internals ---------------------------------------------------------

    async def _send_once(
        self,
        method: str,
        path: str,
        *,
        json: Any | None,
        params: dict[str, Any] | None,
        files: dict[str, Any] | None,
        data: dict[str, Any] | None,
    ) -> dict[str, Any]:
        token = await self._auth.get_token()

        wait = await self._bucket.acquire()
        if wait > 0:
            self._metrics.timing(
                "larkify.rate_limit_wait_ms",
                wait * 1000,
                tags={"method": method, "path": path},
            )

        kwargs: dict[str, Any] = {"headers": {"Authorization": f"Bearer {token}"}}
        if json is not None:
            kwargs["json"] = json
        if params is not None:
            kwargs["params"] = params
        if files is not None:
            kwargs["files"] = files
        if data is not None:
            kwargs["data"] = data

        t0 = time.monotonic()
        try:
            response = await self._client.request(method, path, **kwargs)
        except (httpx.TimeoutException, httpx.NetworkError):
            self._metrics.increment(
                "larkify.requests_total",
                tags={"method": method, "path": path, "status": "error"},
            )
            raise
        elapsed_ms = (time.monotonic() - t0) * 1000

        status = str(response.status_code)
        self._metrics.increment(
            "larkify.requests_total",
            tags={"method": method, "path": path, "status": status},
        )
        self._metrics.timing(
            "larkify.request_duration_ms",
            elapsed_ms,
            tags={"method": method, "path": path, "status": status},
        )

        body = _decode_body(response)
        if self._config.debug_dump_payload:
            _dump_payload(
                method, str(response.url), json if json is not None else data,
                response.status_code, body or response.text[:1000],
                self._config.app_secret, self._config.user_access_token, token,
            )

        if 200 <= response.status_code < 300 and body.get("code", 0) == 0:
            result = body.get("data")
            return result if isinstance(result, dict) else {}

        error = _error_for_response(response, body, method, json)
        if isinstance(error, LarkifyRateLimitError) and error.retry_after:
            self._bucket.pause(error.retry_after)
        elif error.code == ErrorCode.AUTH_ERROR:
            self._auth.invalidate()
        raise error

    def _on_retry(
        self,
        method: str,
        path: str,
        exc: BaseException,
        attempt: int,
        delay: float,
    ) -> None:
        if isinstance(exc, LarkifyRateLimitError):
            reason = "rate_limited"
            self._metrics.increment(
                "larkify.rate_limited_total",
                tags={"method": method, "path": path},
            )
        elif isinstance(exc, LarkifyApiError):
            reason = "server_error"
        else:
            reason = "network_error"
        self._metrics.increment(
            "larkify.retries_total",
            tags={"method": method, "path": path, "reason": reason},
        )
        log.warning(
            "Retrying request",
            extra={
                "extra_fields": {
                    "op": "request",
                    "method": method,
                    "path": path,
                    "reason": reason,
                    "attempt": attempt + 1,
                    "delay": round(delay, 3),
                    "error": str(exc),
                }
            },
        )
