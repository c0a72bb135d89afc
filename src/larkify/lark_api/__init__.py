"""Async wrappers around the open-platform docx, drive and contact APIs."""

from __future__ import annotations

from .blocks import BlockAPI, ChildrenPage, extract_id_relations
from .documents import DocumentAPI
from .medias import MediaAPI
from .permissions import PermissionAPI
from .transport import AsyncLarkTransport

__all__ = [
    "AsyncLarkTransport",
    "BlockAPI",
    "ChildrenPage",
    "DocumentAPI",
    "MediaAPI",
    "PermissionAPI",
    "extract_id_relations",
]
