"""Secret and payload redaction for safe debug output.

Request and response dumps pass through :func:`redact` before they are
written anywhere:

* Values under secret-looking keys (``app_secret``,
  ``tenant_access_token``, ``Authorization``, ...) are masked.
* Every known secret string is scrubbed from all other string values.
* ``Bearer <token>`` fragments are masked.
* Base64 data URLs become ``<data_uri:N_bytes>``.
* Raw bytes (multipart uploads) become ``<binary:N_bytes>``.
"""

from __future__ import annotations

import base64
import binascii
import copy
import re
from typing import Any

_DATA_URI_RE = re.compile(
    r"data:[a-zA-Z0-9_.+-]+/[a-zA-Z0-9_.+-]+;base64,[A-Za-z0-9+/=]+"
)

# A key containing any of these substrings (case-insensitive) is masked.
_SENSITIVE_KEY_PATTERNS: frozenset[str] = frozenset({
    "token",
    "secret",
    "password",
    "authorization",
    "cookie",
})

_BEARER_RE = re.compile(r"(Bearer\s+)\S+")


def _mask(value: str, secrets: tuple[str, ...]) -> str:
    for secret in secrets:
        if secret and secret in value:
            suffix = secret[-4:] if len(secret) >= 8 else "****"
            value = value.replace(secret, f"<redacted:...{suffix}>")
    return _BEARER_RE.sub(lambda m: f"{m.group(1)}<redacted>", value)


def _data_uri_size(uri: str) -> int:
    b64_part = uri.split(";base64,", 1)[-1]
    try:
        return len(base64.b64decode(b64_part, validate=True))
    except (binascii.Error, ValueError):
        return len(b64_part) * 3 // 4


def _redact_value(value: Any, secrets: tuple[str, ...]) -> Any:
    if isinstance(value, dict):
        return _redact_dict(value, secrets)
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, secrets) for item in value]
    if isinstance(value, (bytes, bytearray)):
        return f"<binary:{len(value)}_bytes>"
    if isinstance(value, str):
        if _DATA_URI_RE.search(value):
            value = _DATA_URI_RE.sub(
                lambda m: f"<data_uri:{_data_uri_size(m.group(0))}_bytes>",
                value,
            )
        return _mask(value, secrets)
    return value


def _redact_dict(d: dict, secrets: tuple[str, ...]) -> dict:
    result: dict = {}
    for key, value in d.items():
        key_lower = key.lower() if isinstance(key, str) else ""
        if any(pat in key_lower for pat in _SENSITIVE_KEY_PATTERNS):
            result[key] = "<redacted>" if value else value
        else:
            result[key] = _redact_value(value, secrets)
    return result


def redact(payload: dict, *secrets: str | None) -> dict:
    """Return a deep copy of *payload* with sensitive data redacted.

    Parameters
    ----------
    payload:
        The dictionary to sanitize, typically an API request/response dump.
    *secrets:
        Secret strings (app secret, access tokens) to scrub wherever they
        occur.  ``None`` entries are ignored.

    Examples
    --------
    >>> redact({"Authorization": "Bearer t-abc123"})
    {'Authorization': '<redacted>'}
    """
    known = tuple(s for s in secrets if s)
    return _redact_dict(copy.deepcopy(payload), known)
