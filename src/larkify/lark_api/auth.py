"""Access-token session for the open platform.

:class:`TenantTokenProvider` owns the cached ``tenant_access_token`` for
one client.  The token is exchanged from ``app_id``/``app_secret`` on first
use and refreshed once it is within :data:`REFRESH_MARGIN_SECONDS` of
expiry.  When a user access token is configured it is returned as-is and no
exchange ever happens.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

import httpx

from larkify.config import LarkifyConfig
from larkify.errors import ErrorCode, LarkifyApiError, format_api_failure
from larkify.observability import get_logger

log = get_logger("larkify.auth")

TENANT_TOKEN_PATH = "/open-apis/auth/v3/tenant_access_token/internal"

REFRESH_MARGIN_SECONDS = 300.0
"""Refresh the token this long before the server says it expires."""

_DEFAULT_EXPIRE_SECONDS = 7200.0


class TenantTokenProvider:
    """Cache and refresh the bearer token used by the transport.

    Parameters
    ----------
    config:
        Supplies ``app_id``, ``app_secret`` and ``user_access_token``.
    client:
        The HTTP client used for the token exchange.
    clock:
        Monotonic clock, replaceable in tests.
    """

    def __init__(
        self,
        config: LarkifyConfig,
        client: httpx.AsyncClient,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._client = client
        self._clock = clock
        self._token: str | None = None
        self._expires_at: float = 0.0
        self._lock = asyncio.Lock()

    @property
    def is_valid(self) -> bool:
        """``True`` when a cached tenant token exists and is not near expiry."""
        return self._token is not None and self._clock() < self._expires_at

    def invalidate(self) -> None:
        """Drop the cached token so the next call exchanges a new one."""
        self._token = None
        self._expires_at = 0.0

    async def get_token(self) -> str:
        """Return a bearer token, exchanging or refreshing it if needed."""
        if self._config.user_access_token:
            return self._config.user_access_token

        async with self._lock:
            if not self.is_valid:
                await self._refresh()
            assert self._token is not None
            return self._token

    async def _refresh(self) -> None:
        response = await self._client.post(
            TENANT_TOKEN_PATH,
            json={
                "app_id": self._config.app_id,
                "app_secret": self._config.app_secret,
            },
        )
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        token = body.get("tenant_access_token")
        if response.status_code >= 400 or body.get("code", 0) != 0 or not token:
            raise LarkifyApiError(
                message=format_api_failure(
                    "POST", str(response.url), response.status_code,
                    body.get("code"), body.get("msg") or "failed to obtain tenant access token",
                ),
                context={
                    "method": "POST",
                    "url": str(response.url),
                    "status_code": response.status_code,
                    "lark_code": body.get("code"),
                    "lark_message": body.get("msg"),
                },
                code=ErrorCode.AUTH_ERROR,
            )

        expire = float(body.get("expire") or _DEFAULT_EXPIRE_SECONDS)
        self._token = token
        self._expires_at = self._clock() + expire - REFRESH_MARGIN_SECONDS
        log.debug(
            "Tenant access token refreshed",
            extra={"extra_fields": {"op": "auth", "expire": expire}},
        )
