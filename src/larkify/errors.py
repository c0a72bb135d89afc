"""Full error hierarchy for the larkify SDK.

Every public error class inherits from LarkifyError. Each carries a
machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

Error codes are defined as a :class:`str` enum so that they serialise
naturally to JSON and can be matched with simple ``==`` comparisons.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error the SDK can raise."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    TRANSFORM_ERROR = "TRANSFORM_ERROR"
    RENDER_ERROR = "RENDER_ERROR"
    MEDIA_ERROR = "MEDIA_ERROR"
    MEDIA_NOT_FOUND = "MEDIA_NOT_FOUND"
    MEDIA_SIZE_ERROR = "MEDIA_SIZE_ERROR"
    MEDIA_PARSE_ERROR = "MEDIA_PARSE_ERROR"
    API_ERROR = "API_ERROR"
    INVALID_PARAMETER = "INVALID_PARAMETER"
    TOO_MANY_BLOCKS = "TOO_MANY_BLOCKS"
    TOO_MANY_CHILDREN = "TOO_MANY_CHILDREN"
    RATE_LIMITED = "RATE_LIMITED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    AUTH_ERROR = "AUTH_ERROR"
    NOT_FOUND = "NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    RETRY_EXHAUSTED = "RETRY_EXHAUSTED"


# Remote business codes returned in the ``code`` field of the response
# envelope.  Anything not listed here maps to ``API_ERROR``.
_LARK_CODE_MAP: dict[int, ErrorCode] = {
    1770001: ErrorCode.INVALID_PARAMETER,
    1770002: ErrorCode.NOT_FOUND,
    1770004: ErrorCode.TOO_MANY_BLOCKS,
    1770007: ErrorCode.TOO_MANY_CHILDREN,
    1770032: ErrorCode.PERMISSION_DENIED,
    99991400: ErrorCode.RATE_LIMITED,
    99991661: ErrorCode.AUTH_ERROR,
    99991663: ErrorCode.AUTH_ERROR,
    99991668: ErrorCode.AUTH_ERROR,
    99991672: ErrorCode.PERMISSION_DENIED,
}

_STATUS_CODE_MAP: dict[int, ErrorCode] = {
    400: ErrorCode.INVALID_PARAMETER,
    401: ErrorCode.AUTH_ERROR,
    403: ErrorCode.PERMISSION_DENIED,
    404: ErrorCode.NOT_FOUND,
    429: ErrorCode.RATE_LIMITED,
}


def classify_lark_code(lark_code: int | None, status_code: int | None) -> ErrorCode:
    """Map a remote business code and HTTP status to an :class:`ErrorCode`.

    The business code wins when it is known; the HTTP status is the
    fallback.  Rate limiting is recognised from either source.
    """
    if status_code == 429 or lark_code == 99991400:
        return ErrorCode.RATE_LIMITED
    if lark_code is not None and lark_code in _LARK_CODE_MAP:
        return _LARK_CODE_MAP[lark_code]
    if status_code is not None and status_code in _STATUS_CODE_MAP:
        return _STATUS_CODE_MAP[status_code]
    return ErrorCode.API_ERROR


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class LarkifyError(Exception):
    """Base exception for all larkify errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys and expected types are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Local pipeline errors
# ---------------------------------------------------------------------------

class LarkifyConfigurationError(LarkifyError):
    """Credentials or other required settings are missing.

    Context keys: ``missing`` (list of setting names).
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.CONFIGURATION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class LarkifyParseError(LarkifyError):
    """The Markdown parser rejected its input."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.PARSE_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class LarkifyTransformError(LarkifyError):
    """Conversion produced nothing usable, or a required response field
    was missing.

    Context keys: ``document_id``, ``field``, ``anchor_id``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.TRANSFORM_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class LarkifyRenderError(LarkifyError):
    """A diagram could not be rendered to an image.

    Context keys: ``command``, ``returncode``, ``stderr``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.RENDER_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Media errors
# ---------------------------------------------------------------------------

class LarkifyMediaError(LarkifyError):
    """Base class for image fetch, read, and upload failures.

    Context keys: ``src``, ``block_id``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
        code: str = ErrorCode.MEDIA_ERROR,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            context=context,
            cause=cause,
        )


class LarkifyMediaNotFoundError(LarkifyMediaError):
    """A local image file does not exist or is not readable.

    Context keys: ``src``, ``resolved_path``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            context=context,
            cause=cause,
            code=ErrorCode.MEDIA_NOT_FOUND,
        )


class LarkifyMediaSizeError(LarkifyMediaError):
    """An image exceeds the configured maximum size.

    Context keys: ``src``, ``size_bytes``, ``max_bytes``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            context=context,
            cause=cause,
            code=ErrorCode.MEDIA_SIZE_ERROR,
        )


class LarkifyMediaParseError(LarkifyMediaError):
    """A data URL could not be decoded.

    Context keys: ``src`` (truncated).
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            context=context,
            cause=cause,
            code=ErrorCode.MEDIA_PARSE_ERROR,
        )


# ---------------------------------------------------------------------------
# API / transport errors
# ---------------------------------------------------------------------------

def format_api_failure(
    method: str,
    url: str,
    status_code: int | None,
    lark_code: int | None,
    lark_message: str | None,
) -> str:
    """Build the one-line diagnostic string used as an API error message."""
    parts = [f"[method={method}]", f"[url={url}]"]
    if status_code is not None:
        parts.append(f"[status={status_code}]")
    if lark_code is not None:
        parts.append(f"[code={lark_code}]")
    if lark_message:
        parts.append(f"[msg={lark_message}]")
    return " ".join(parts)


class LarkifyApiError(LarkifyError):
    """The remote API rejected a request.

    ``code`` is the classified :class:`ErrorCode` (invalid parameter,
    too-many-blocks, too-many-children, rate-limited, permission-denied,
    ...), so callers can branch without parsing the message.

    Context keys: ``method``, ``url``, ``status_code``, ``lark_code``,
    ``lark_message``, ``request``, ``headers``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
        code: str | None = None,
    ) -> None:
        ctx = context or {}
        if code is None:
            code = classify_lark_code(ctx.get("lark_code"), ctx.get("status_code"))
        super().__init__(
            code=code,
            message=message,
            context=ctx,
            cause=cause,
        )

    @property
    def status_code(self) -> int | None:
        return self.context.get("status_code")

    @property
    def lark_code(self) -> int | None:
        return self.context.get("lark_code")

    @property
    def lark_message(self) -> str | None:
        return self.context.get("lark_message")


class LarkifyRateLimitError(LarkifyApiError):
    """The remote API asked the client to slow down (HTTP 429 or 99991400).

    Context keys: all of :class:`LarkifyApiError` plus ``retry_after``
    (seconds from the rate-limit reset header, or ``None``).
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            context=context,
            cause=cause,
            code=ErrorCode.RATE_LIMITED,
        )

    @property
    def retry_after(self) -> float | None:
        return self.context.get("retry_after")


class LarkifyPermissionError(LarkifyApiError):
    """The app or user lacks access to the target document (HTTP 403 or
    1770032).
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            context=context,
            cause=cause,
            code=ErrorCode.PERMISSION_DENIED,
        )


class LarkifyNetworkError(LarkifyError):
    """A transport-level failure (DNS, connection reset, timeout).

    Context keys: ``method``, ``url``, ``attempt``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.NETWORK_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class LarkifyRetryExhaustedError(LarkifyError):
    """All retry attempts for a request were used up.

    Context keys: ``attempts``, ``last_error``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.RETRY_EXHAUSTED,
            message=message,
            context=context,
            cause=cause,
        )
