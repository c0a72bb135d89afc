"""Serialize :class:`ContentBlock` records to docx descendant-block JSON.

Every payload has the shape::

    {
        "block_id": "<temporary id>",
        "block_type": <int>,
        "<body key>": {...},
        "children": ["<temporary id>", ...],
    }

Text-like bodies carry ``elements``, a list of ``text_run`` elements.
"""

from __future__ import annotations

from typing import Any

from larkify.converter.languages import CodeLanguage
from larkify.models import TEXT_LIKE_KINDS, BlockKind, ContentBlock, StyledTextRun, TextStyle

# ---------------------------------------------------------------------------
# Remote block types
# ---------------------------------------------------------------------------

BLOCK_TYPE_TEXT = 2
BLOCK_TYPE_HEADING1 = 3
BLOCK_TYPE_BULLET = 12
BLOCK_TYPE_ORDERED = 13
BLOCK_TYPE_CODE = 14
BLOCK_TYPE_TODO = 17
BLOCK_TYPE_DIVIDER = 22
BLOCK_TYPE_IMAGE = 27
BLOCK_TYPE_TABLE = 31
BLOCK_TYPE_TABLE_CELL = 32
BLOCK_TYPE_QUOTE_CONTAINER = 34

ALIGN_CENTER = 2

_SIMPLE_TYPES: dict[BlockKind, tuple[int, str]] = {
    BlockKind.TEXT: (BLOCK_TYPE_TEXT, "text"),
    BlockKind.BULLET: (BLOCK_TYPE_BULLET, "bullet"),
    BlockKind.ORDERED: (BLOCK_TYPE_ORDERED, "ordered"),
    BlockKind.DIVIDER: (BLOCK_TYPE_DIVIDER, "divider"),
    BlockKind.QUOTE_CONTAINER: (BLOCK_TYPE_QUOTE_CONTAINER, "quote_container"),
    BlockKind.TABLE_CELL: (BLOCK_TYPE_TABLE_CELL, "table_cell"),
}


def _style_payload(style: TextStyle) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if style.bold:
        payload["bold"] = True
    if style.italic:
        payload["italic"] = True
    if style.strikethrough:
        payload["strikethrough"] = True
    if style.underline:
        payload["underline"] = True
    if style.inline_code:
        payload["inline_code"] = True
    if style.link:
        payload["link"] = {"url": style.link}
    return payload


def text_elements(runs: list[StyledTextRun]) -> list[dict[str, Any]]:
    """Convert styled runs to ``text_run`` elements (never empty)."""
    elements: list[dict[str, Any]] = []
    for run in runs or [StyledTextRun(content="")]:
        text_run: dict[str, Any] = {"content": run.content}
        if run.style is not None:
            style = _style_payload(run.style)
            if style:
                text_run["text_element_style"] = style
        elements.append({"text_run": text_run})
    return elements


def _body(block: ContentBlock) -> dict[str, Any]:
    kind = block.kind
    if kind in TEXT_LIKE_KINDS:
        body: dict[str, Any] = {"elements": text_elements(block.runs)}
        if kind == BlockKind.CODE:
            body["style"] = {
                "language": block.language or int(CodeLanguage.PLAIN_TEXT),
                "wrap": False,
            }
        elif kind == BlockKind.TODO:
            body["style"] = {"done": bool(block.done)}
        return body
    if kind == BlockKind.IMAGE:
        return {"align": ALIGN_CENTER}
    if kind == BlockKind.TABLE:
        table = block.table
        if table is None:
            raise ValueError(f"table block {block.id!r} has no table property")
        return {
            "property": {
                "row_size": table.row_size,
                "column_size": table.column_size,
                "column_width": list(table.column_width),
            },
        }
    # Divider, quote container and table cell bodies are empty.
    return {}


def block_type_and_key(block: ContentBlock) -> tuple[int, str]:
    """Return the remote ``block_type`` number and body key for *block*."""
    kind = block.kind
    if kind == BlockKind.HEADING:
        level = min(max(block.level or 1, 1), 9)
        return BLOCK_TYPE_HEADING1 + level - 1, f"heading{level}"
    if kind == BlockKind.CODE:
        return BLOCK_TYPE_CODE, "code"
    if kind == BlockKind.TODO:
        return BLOCK_TYPE_TODO, "todo"
    if kind == BlockKind.IMAGE:
        return BLOCK_TYPE_IMAGE, "image"
    if kind == BlockKind.TABLE:
        return BLOCK_TYPE_TABLE, "table"
    return _SIMPLE_TYPES[kind]


def block_to_payload(block: ContentBlock) -> dict[str, Any]:
    """Serialize one block for a descendant-creation request."""
    block_type, key = block_type_and_key(block)
    return {
        "block_id": block.id,
        "block_type": block_type,
        key: _body(block),
        "children": list(block.children),
    }
