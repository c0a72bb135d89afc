"""Parse Markdown and normalize to canonical AST tokens.

This module wraps mistune v3's AST renderer and normalises the raw token
stream into a well-defined set of canonical types used by the walker.

Canonical block tokens:
    heading, paragraph, block_quote, list, list_item, task_list_item,
    block_code, table, thematic_break, html_block

Canonical inline tokens:
    text, strong, emphasis, underline, codespan, strikethrough, link,
    image, softbreak, linebreak, html_inline

Table sub-tokens (table_head, table_body, table_row, table_cell) pass
through with their attrs.  Unknown token types are kept with their
children so the walker can degrade them to plain text.
"""

from __future__ import annotations

import mistune

from larkify.errors import LarkifyParseError

# ---------------------------------------------------------------------------
# Mistune-to-canonical type mapping
# ---------------------------------------------------------------------------

_BLOCK_TYPE_MAP: dict[str, str] = {
    "heading": "heading",
    "paragraph": "paragraph",
    "block_quote": "block_quote",
    "list": "list",
    "list_item": "list_item",
    "task_list_item": "task_list_item",
    "block_code": "block_code",
    "table": "table",
    "thematic_break": "thematic_break",
    "block_html": "html_block",
    # Tight list items carry their text in block_text.
    "block_text": "paragraph",
}

_INLINE_TYPE_MAP: dict[str, str] = {
    "text": "text",
    "strong": "strong",
    "emphasis": "emphasis",
    "insert": "underline",
    "codespan": "codespan",
    "strikethrough": "strikethrough",
    "link": "link",
    "image": "image",
    "softbreak": "softbreak",
    "linebreak": "linebreak",
    "inline_html": "html_inline",
}

_TABLE_PARTS: frozenset[str] = frozenset({
    "table_head",
    "table_body",
    "table_row",
    "table_cell",
})

_SKIP_TYPES: frozenset[str] = frozenset({
    "blank_line",
})

_RAW_TYPES: frozenset[str] = frozenset({
    "block_code",
    "html_block",
    "codespan",
    "html_inline",
    "text",
})


class ASTNormalizer:
    """Parse Markdown and normalize to canonical AST tokens."""

    def __init__(self) -> None:
        self._parser = mistune.create_markdown(
            renderer="ast",
            plugins=[
                "strikethrough",
                "table",
                "task_lists",
                "url",
                "insert",
            ],
        )

    def parse(self, markdown: str) -> list[dict]:
        """Parse markdown and return the normalized token list.

        Raises
        ------
        LarkifyParseError
            If the parser fails on the input.
        """
        try:
            raw_tokens = self._parser(markdown)
        except Exception as exc:
            raise LarkifyParseError(
                message=f"Failed to parse Markdown: {exc}",
                context={"length": len(markdown)},
                cause=exc,
            ) from exc
        if isinstance(raw_tokens, str):
            return []
        return self._normalize_tokens(raw_tokens)

    def _normalize_tokens(self, tokens: list[dict]) -> list[dict]:
        result: list[dict] = []
        for token in tokens:
            normalized = self._normalize_token(token)
            if normalized is not None:
                result.append(normalized)
        return result

    def _normalize_token(self, token: dict) -> dict | None:
        raw_type = token.get("type", "")
        if raw_type in _SKIP_TYPES:
            return None

        if raw_type in _BLOCK_TYPE_MAP:
            canonical = _BLOCK_TYPE_MAP[raw_type]
        elif raw_type in _INLINE_TYPE_MAP:
            canonical = _INLINE_TYPE_MAP[raw_type]
        elif raw_type in _TABLE_PARTS:
            canonical = raw_type
        else:
            # Unknown: keep it so the walker can extract its text.
            canonical = raw_type or "unknown"

        result: dict = {"type": canonical}

        attrs = token.get("attrs")
        if attrs:
            result["attrs"] = dict(attrs)

        if canonical in _RAW_TYPES or "raw" in token:
            raw = token.get("raw", "")
            if canonical == "block_code" and raw.endswith("\n"):
                raw = raw[:-1]
            result["raw"] = raw

        children = token.get("children")
        if children:
            result["children"] = self._normalize_tokens(children)

        return result
