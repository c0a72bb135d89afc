"""Image source detection.

Turns the raw ``src`` of a Markdown image (``![alt](src)``) into a
:class:`MediaReference`.  Data URLs are decoded on the spot; ``http(s)``
URLs are kept for a deferred fetch; anything else is treated as a
filesystem path.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import unquote, urlparse

from larkify.errors import LarkifyMediaParseError
from larkify.models import MediaReference

from .validate import extension_for_mime, parse_data_uri


def parse_image_source(src: str, base_dir: str | None = None) -> MediaReference:
    """Classify *src* and build the matching :class:`MediaReference`.

    Parameters
    ----------
    src:
        The raw source string from a Markdown image token.
    base_dir:
        Directory that relative paths are resolved against.  Defaults to
        the current working directory.

    Raises
    ------
    LarkifyMediaParseError
        If *src* is empty or is a data URL that cannot be decoded.
    """
    src = (src or "").strip()
    if not src:
        raise LarkifyMediaParseError(
            message="Image has an empty source",
            context={"src": src},
        )

    if src[:5].lower() == "data:":
        mime, data = parse_data_uri(src)
        return MediaReference.from_bytes(data, f"image.{extension_for_mime(mime)}")

    parsed = urlparse(src)
    if parsed.scheme in ("http", "https"):
        return MediaReference.from_url(src)

    if parsed.scheme == "file":
        return MediaReference.from_path(str(Path(unquote(parsed.path))))

    path = Path(src).expanduser()
    if not path.is_absolute():
        path = Path(base_dir or Path.cwd()) / path
    return MediaReference.from_path(str(path))
