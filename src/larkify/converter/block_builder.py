"""Walk normalized AST tokens into a :class:`BlockForest`.

Handled block tokens:

- heading -> Heading (level clamped to 1-9)
- paragraph -> Text, or a single Image when the paragraph is just one image
- list / list_item / task_list_item -> Bullet, Ordered or Todo; the first
  paragraph is the item text, everything after it nests under the item
- block_code -> Code, or an Image for rendered ``mermaid`` fences
- block_quote -> Quote container with the quoted blocks as children
- thematic_break -> Divider
- table -> one or more Table blocks, each cell a TableCell holding one Text
- html_block -> Text with the raw source

Unknown tokens degrade to their plain text, or vanish if they have none.

Blocks are added to the forest in depth-first pre-order: a parent before
its children, siblings in document order.  The batch planner relies on it.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable

from larkify.config import ConvertOptions, LarkifyConfig
from larkify.converter.languages import CodeLanguage, is_mermaid, normalize_language
from larkify.converter.rich_text import build_text_runs, ensure_runs, extract_text
from larkify.converter.tables import cell_texts, chunk_rows, compute_column_widths, table_rows
from larkify.diagram import MermaidRenderer
from larkify.errors import LarkifyMediaError, LarkifyRenderError
from larkify.media.detect import parse_image_source
from larkify.models import (
    BlockForest,
    BlockKind,
    ContentBlock,
    ConversionResult,
    ConversionWarning,
    MediaReference,
    StyledTextRun,
    TableProperty,
)
from larkify.observability import get_logger

log = get_logger("larkify.converter")

MAX_HEADING_LEVEL = 9


def new_temp_id() -> str:
    """Generate a temporary block id, unique within a conversion."""
    return f"temp_{uuid.uuid4().hex[:16]}"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def build_forest(
    tokens: list[dict],
    *,
    config: LarkifyConfig,
    options: ConvertOptions | None = None,
    renderer: MermaidRenderer | None = None,
    work_dir: str | None = None,
    id_factory: Callable[[], str] = new_temp_id,
) -> ConversionResult:
    """Convert normalized AST tokens to a block forest.

    Parameters
    ----------
    tokens:
        Canonical AST tokens from :class:`ASTNormalizer`.
    config:
        SDK configuration (table cell ceiling).
    options:
        Per-call options: image base directory and diagram settings.
    renderer:
        Diagram renderer.  Mermaid fences stay code blocks without one.
    work_dir:
        Scratch directory for diagram rendering.
    id_factory:
        Temporary id generator.

    Returns
    -------
    ConversionResult
        The forest, media references keyed by Image block id, and warnings.
    """
    ctx = _BuildContext(config, options or ConvertOptions(), renderer, work_dir, id_factory)
    _process_tokens(tokens, ctx, None)
    return ConversionResult(forest=ctx.forest, media=ctx.media, warnings=ctx.warnings)


class _BuildContext:
    """Mutable accumulator for one walk."""

    __slots__ = (
        "config",
        "diagram_count",
        "forest",
        "media",
        "new_id",
        "options",
        "renderer",
        "warnings",
        "work_dir",
    )

    def __init__(
        self,
        config: LarkifyConfig,
        options: ConvertOptions,
        renderer: MermaidRenderer | None,
        work_dir: str | None,
        id_factory: Callable[[], str],
    ) -> None:
        self.config = config
        self.options = options
        self.renderer = renderer
        self.work_dir = work_dir
        self.new_id = id_factory
        self.forest = BlockForest()
        self.media: dict[str, MediaReference] = {}
        self.warnings: list[ConversionWarning] = []
        self.diagram_count = 0

    def add_block(
        self,
        kind: BlockKind,
        parent_id: str | None,
        *,
        runs: list[StyledTextRun] | None = None,
        **fields: object,
    ) -> ContentBlock:
        block = ContentBlock(id=self.new_id(), kind=kind, runs=runs or [], **fields)
        return self.forest.add(block, parent_id)

    def add_warning(self, code: str, message: str, **context: object) -> None:
        self.warnings.append(ConversionWarning(
            code=code, message=message, context=dict(context),
        ))


# ---------------------------------------------------------------------------
# Token dispatch
# ---------------------------------------------------------------------------

def _process_tokens(tokens: list[dict], ctx: _BuildContext, parent_id: str | None) -> None:
    for token in tokens:
        _process_token(token, ctx, parent_id)


def _process_token(token: dict, ctx: _BuildContext, parent_id: str | None) -> None:
    handler = _BLOCK_HANDLERS.get(token.get("type", ""))
    if handler is not None:
        handler(token, ctx, parent_id)
        return
    _build_fallback_text(token, ctx, parent_id)


# ---------------------------------------------------------------------------
# Block builders
# ---------------------------------------------------------------------------

def _build_heading(token: dict, ctx: _BuildContext, parent_id: str | None) -> None:
    level = token.get("attrs", {}).get("level", 1)
    level = min(max(int(level), 1), MAX_HEADING_LEVEL)
    runs = ensure_runs(build_text_runs(token.get("children", [])))
    ctx.add_block(BlockKind.HEADING, parent_id, runs=runs, level=level)


def _build_paragraph(token: dict, ctx: _BuildContext, parent_id: str | None) -> None:
    children = token.get("children", [])

    if len(children) == 1 and children[0].get("type") == "image":
        _build_image(children[0], ctx, parent_id)
        return

    runs = build_text_runs(children)
    # Don't create empty paragraphs
    if not runs:
        return
    ctx.add_block(BlockKind.TEXT, parent_id, runs=runs)


def _build_image(token: dict, ctx: _BuildContext, parent_id: str | None) -> None:
    """Emit an Image block and record where its bytes come from.

    A source that cannot be parsed (an empty src or a broken data URL)
    leaves the block imageless with a warning.
    """
    src = token.get("attrs", {}).get("url", "")
    block = ctx.add_block(BlockKind.IMAGE, parent_id)
    try:
        ctx.media[block.id] = parse_image_source(src, ctx.options.image_base_dir)
    except LarkifyMediaError as exc:
        ctx.add_warning(
            "IMAGE_SOURCE_INVALID",
            f"Image source could not be used: {exc.message}",
            block_id=block.id,
            **exc.context,
        )


def _build_list(token: dict, ctx: _BuildContext, parent_id: str | None) -> None:
    ordered = bool(token.get("attrs", {}).get("ordered", False))
    for item in token.get("children", []):
        item_type = item.get("type", "")
        if item_type in ("list_item", "task_list_item"):
            _build_list_item(item, ordered, ctx, parent_id)


def _build_list_item(
    token: dict,
    ordered: bool,
    ctx: _BuildContext,
    parent_id: str | None,
) -> None:
    """Build one Bullet/Ordered/Todo block plus its nested children."""
    children = token.get("children", [])

    rest = children
    runs: list[StyledTextRun] = []
    if children and children[0].get("type") == "paragraph":
        runs = build_text_runs(children[0].get("children", []))
        rest = children[1:]
    runs = ensure_runs(runs)

    if token.get("type") == "task_list_item":
        checked = bool(token.get("attrs", {}).get("checked", False))
        block = ctx.add_block(BlockKind.TODO, parent_id, runs=runs, done=checked)
    elif ordered:
        block = ctx.add_block(BlockKind.ORDERED, parent_id, runs=runs)
    else:
        block = ctx.add_block(BlockKind.BULLET, parent_id, runs=runs)

    _process_tokens(rest, ctx, block.id)


def _build_code_block(token: dict, ctx: _BuildContext, parent_id: str | None) -> None:
    raw = token.get("raw", "")
    info = token.get("attrs", {}).get("info")

    if is_mermaid(info) and ctx.options.diagram.enabled and ctx.renderer is not None:
        if _render_diagram(raw, ctx, parent_id):
            return
        language = CodeLanguage.PLAIN_TEXT
    else:
        language = normalize_language(info)

    ctx.add_block(
        BlockKind.CODE,
        parent_id,
        runs=[StyledTextRun(content=raw)],
        language=int(language),
    )


def _render_diagram(source: str, ctx: _BuildContext, parent_id: str | None) -> bool:
    """Render a mermaid fence into an Image block.

    Returns ``False`` when rendering failed and the caller should fall
    back to a code block.
    """
    if ctx.work_dir is None or ctx.renderer is None:
        return False
    try:
        data = ctx.renderer.render(source, ctx.options.diagram, ctx.work_dir)
    except LarkifyRenderError as exc:
        log.warning(
            "Diagram rendering failed; keeping the source as a code block",
            extra={"extra_fields": {"op": "render", "error": exc.message, **exc.context}},
        )
        ctx.add_warning(
            "DIAGRAM_RENDER_FAILED",
            f"Mermaid diagram could not be rendered: {exc.message}",
            **exc.context,
        )
        return False

    ctx.diagram_count += 1
    block = ctx.add_block(BlockKind.IMAGE, parent_id)
    ctx.media[block.id] = MediaReference.from_bytes(data, f"mermaid_{ctx.diagram_count}.png")
    return True


def _build_block_quote(token: dict, ctx: _BuildContext, parent_id: str | None) -> None:
    block = ctx.add_block(BlockKind.QUOTE_CONTAINER, parent_id)
    _process_tokens(token.get("children", []), ctx, block.id)


def _build_divider(token: dict, ctx: _BuildContext, parent_id: str | None) -> None:
    ctx.add_block(BlockKind.DIVIDER, parent_id)


def _build_table(token: dict, ctx: _BuildContext, parent_id: str | None) -> None:
    """Build one Table block per row chunk.

    Every chunk keeps the full column count and the widths computed over
    the whole table.
    """
    rows = table_rows(token)
    columns = max((len(row) for row in rows), default=0)
    if columns == 0:
        return

    max_cells = ctx.config.table_max_cells
    if columns > max_cells:
        ctx.add_warning(
            "TABLE_TOO_WIDE",
            f"Table has {columns} columns; a single row exceeds {max_cells} cells.",
            columns=columns,
            max_cells=max_cells,
        )

    widths = compute_column_widths(cell_texts(rows), columns)
    for chunk in chunk_rows(rows, columns, max_cells):
        table = ctx.add_block(
            BlockKind.TABLE,
            parent_id,
            table=TableProperty(
                row_size=len(chunk),
                column_size=columns,
                column_width=list(widths),
            ),
        )
        for row in chunk:
            for index in range(columns):
                cell_tokens = row[index] if index < len(row) else []
                cell = ctx.add_block(BlockKind.TABLE_CELL, table.id)
                ctx.add_block(
                    BlockKind.TEXT,
                    cell.id,
                    runs=ensure_runs(build_text_runs(cell_tokens)),
                )


def _build_html_block(token: dict, ctx: _BuildContext, parent_id: str | None) -> None:
    raw = token.get("raw", "").strip()
    if not raw:
        return
    ctx.add_block(BlockKind.TEXT, parent_id, runs=[StyledTextRun(content=raw)])


def _build_fallback_text(token: dict, ctx: _BuildContext, parent_id: str | None) -> None:
    """Degrade an unrecognized token to its plain text, or drop it."""
    text = extract_text(token.get("children", [])) or token.get("raw", "")
    if not text.strip():
        return
    ctx.add_block(BlockKind.TEXT, parent_id, runs=[StyledTextRun(content=text)])


# ---------------------------------------------------------------------------
# Block handler dispatch table
# ---------------------------------------------------------------------------

_BlockHandler = Callable[[dict, _BuildContext, "str | None"], None]

_BLOCK_HANDLERS: dict[str, _BlockHandler] = {
    "heading": _build_heading,
    "paragraph": _build_paragraph,
    "block_quote": _build_block_quote,
    "list": _build_list,
    "block_code": _build_code_block,
    "thematic_break": _build_divider,
    "table": _build_table,
    "html_block": _build_html_block,
}
