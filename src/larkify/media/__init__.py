"""Image source detection, validation and resolution."""

from __future__ import annotations

from .detect import parse_image_source
from .resolve import MediaResolver
from .validate import check_size, extension_for_mime, parse_data_uri, sniff_mime

__all__ = [
    "MediaResolver",
    "check_size",
    "extension_for_mime",
    "parse_data_uri",
    "parse_image_source",
    "sniff_mime",
]
