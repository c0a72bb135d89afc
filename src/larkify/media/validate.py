"""Image validation helpers: MIME sniffing, data URLs and size checks."""

from __future__ import annotations

import base64
import binascii
import mimetypes
import re
from urllib.parse import unquote_to_bytes

from larkify.errors import LarkifyMediaParseError, LarkifyMediaSizeError

# data:[<mediatype>][;base64],<data>
_DATA_URI_RE = re.compile(
    r"^data:(?P<mime>[^;,]+)?(?P<params>(?:;[^;,]*)*?)(?:;(?P<encoding>base64))?,(?P<data>.*)$",
    re.IGNORECASE | re.DOTALL,
)

# Map of magic bytes to MIME types for sniffing.
_MAGIC_BYTES: list[tuple[bytes, str]] = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"RIFF", "image/webp"),  # RIFF....WEBP
    (b"<svg", "image/svg+xml"),
    (b"<?xml", "image/svg+xml"),
    (b"BM", "image/bmp"),
]

_MIME_EXTENSIONS: dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "image/bmp": "bmp",
    "image/tiff": "tiff",
    "image/x-icon": "ico",
    "image/avif": "avif",
}

DEFAULT_EXTENSION = "png"


def sniff_mime(data: bytes) -> str | None:
    """Detect an image MIME type from its leading bytes."""
    for magic, mime in _MAGIC_BYTES:
        if data[:len(magic)] == magic:
            if magic == b"RIFF" and data[8:12] != b"WEBP":
                continue
            return mime
    return None


def extension_for_mime(mime: str | None) -> str:
    """File extension (without the dot) for an image MIME type.

    Parameters such as ``; charset=...`` are ignored.  Unknown types map
    to ``png``.
    """
    if not mime:
        return DEFAULT_EXTENSION
    base = mime.split(";", 1)[0].strip().lower()
    if base in _MIME_EXTENSIONS:
        return _MIME_EXTENSIONS[base]
    guessed = mimetypes.guess_extension(base)
    return guessed.lstrip(".") if guessed else DEFAULT_EXTENSION


def ensure_extension(file_name: str, data: bytes, content_type: str | None = None) -> str:
    """Return *file_name* with an extension, inferring one if it has none."""
    if "." in file_name.rsplit("/", 1)[-1]:
        return file_name
    mime = sniff_mime(data) or content_type
    return f"{file_name}.{extension_for_mime(mime)}"


def parse_data_uri(src: str) -> tuple[str, bytes]:
    """Parse a data URL and return ``(mime_type, decoded_bytes)``.

    Raises
    ------
    LarkifyMediaParseError
        If the URL is malformed or its payload cannot be decoded.
    """
    match = _DATA_URI_RE.match(src.strip())
    if not match:
        raise LarkifyMediaParseError(
            message="Invalid data URL format",
            context={"src": truncate_src(src), "reason": "regex_no_match"},
        )

    mime_type = match.group("mime") or "application/octet-stream"
    payload = match.group("data")

    if match.group("encoding"):
        try:
            decoded = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise LarkifyMediaParseError(
                message="Failed to decode base64 data URL",
                context={"src": truncate_src(src), "reason": "base64_decode_error"},
                cause=exc,
            ) from exc
    else:
        decoded = unquote_to_bytes(payload)

    if not decoded:
        raise LarkifyMediaParseError(
            message="Data URL has an empty payload",
            context={"src": truncate_src(src), "reason": "empty"},
        )
    return mime_type, decoded


def check_size(size: int, max_bytes: int, src: str) -> None:
    """Raise :class:`LarkifyMediaSizeError` when *size* exceeds *max_bytes*."""
    if size > max_bytes:
        raise LarkifyMediaSizeError(
            message=f"Image size {size} bytes exceeds maximum {max_bytes} bytes",
            context={
                "src": truncate_src(src),
                "size_bytes": size,
                "max_bytes": max_bytes,
            },
        )


def truncate_src(src: str, max_len: int = 200) -> str:
    """Truncate a source string for inclusion in error context."""
    if len(src) <= max_len:
        return src
    return src[:max_len] + "..."
