"""Tests for the AST-to-forest walker (converter/block_builder.py)."""

from __future__ import annotations

from unittest.mock import MagicMock

from larkify.config import ConvertOptions, DiagramOptions, LarkifyConfig
from larkify.converter.ast_normalizer import ASTNormalizer
from larkify.converter.block_builder import build_forest, new_temp_id
from larkify.converter.languages import CodeLanguage
from larkify.diagram import MermaidRenderer
from larkify.errors import LarkifyRenderError
from larkify.models import (
    BlockKind,
    ConversionResult,
    MediaSourceType,
    StyledTextRun,
    TextStyle,
)


def make_config(**overrides) -> LarkifyConfig:
    defaults = {"app_id": "cli_test_app", "app_secret": "test_secret_1234"}
    defaults.update(overrides)
    return LarkifyConfig(**defaults)


def walk(
    markdown: str,
    *,
    config: LarkifyConfig | None = None,
    options: ConvertOptions | None = None,
    renderer=None,
    work_dir: str | None = None,
) -> ConversionResult:
    tokens = ASTNormalizer().parse(markdown)
    return build_forest(
        tokens,
        config=config or make_config(),
        options=options,
        renderer=renderer,
        work_dir=work_dir,
    )


def sequential_ids():
    counter = iter(range(1, 10_000))
    return lambda: f"temp_{next(counter)}"


# =========================================================================
# Basic blocks
# =========================================================================

class TestBasicBlocks:

    def test_heading_and_styled_paragraph(self):
        result = walk("# Title\n\nHello **world**")
        roots = result.forest.roots
        assert [b.kind for b in roots] == [BlockKind.HEADING, BlockKind.TEXT]
        assert roots[0].level == 1
        assert roots[0].text == "Title"
        assert roots[1].runs == [
            StyledTextRun("Hello ", None),
            StyledTextRun("world", TextStyle(bold=True)),
        ]
        assert result.warnings == []

    def test_heading_levels(self):
        result = walk("## two\n\n###### six")
        assert [b.level for b in result.forest.roots] == [2, 6]

    def test_heading_level_clamped_to_nine(self):
        tokens = [{
            "type": "heading",
            "attrs": {"level": 12},
            "children": [{"type": "text", "raw": "deep"}],
        }]
        result = build_forest(tokens, config=make_config())
        assert result.forest.roots[0].level == 9

    def test_divider(self):
        result = walk("above\n\n---\n\nbelow")
        kinds = [b.kind for b in result.forest.roots]
        assert kinds == [BlockKind.TEXT, BlockKind.DIVIDER, BlockKind.TEXT]

    def test_code_block_language(self):
        result = walk("```python\nprint(1)\n```")
        block = result.forest.roots[0]
        assert block.kind == BlockKind.CODE
        assert block.language == int(CodeLanguage.PYTHON)
        assert block.text == "print(1)"

    def test_code_block_without_language_is_plain_text(self):
        result = walk("```\nraw\n```")
        assert result.forest.roots[0].language == int(CodeLanguage.PLAIN_TEXT)

    def test_html_block_kept_as_text(self):
        result = walk("<div>hi</div>")
        block = result.forest.roots[0]
        assert block.kind == BlockKind.TEXT
        assert block.text == "<div>hi</div>"

    def test_empty_input_produces_no_blocks(self):
        assert len(walk("").forest) == 0
        assert len(walk("   \n\n").forest) == 0

    def test_unknown_token_degrades_to_text(self):
        tokens = [{"type": "footnote", "children": [{"type": "text", "raw": "note"}]}]
        result = build_forest(tokens, config=make_config())
        assert result.forest.roots[0].kind == BlockKind.TEXT
        assert result.forest.roots[0].text == "note"

    def test_unknown_token_without_text_is_dropped(self):
        tokens = [{"type": "mystery"}]
        result = build_forest(tokens, config=make_config())
        assert len(result.forest) == 0

    def test_custom_id_factory(self):
        tokens = ASTNormalizer().parse("a\n\nb")
        result = build_forest(tokens, config=make_config(), id_factory=sequential_ids())
        assert result.forest.root_ids == ["temp_1", "temp_2"]

    def test_default_ids_are_unique(self):
        ids = {new_temp_id() for _ in range(200)}
        assert len(ids) == 200
        assert all(i.startswith("temp_") for i in ids)


# =========================================================================
# Lists and quotes
# =========================================================================

class TestNesting:

    def test_nested_bullets(self):
        result = walk("- A\n  - B")
        forest = result.forest
        assert len(forest.root_ids) == 1
        a = forest.roots[0]
        assert a.kind == BlockKind.BULLET
        assert a.text == "A"
        assert len(a.children) == 1
        b = forest.get(a.children[0])
        assert b.kind == BlockKind.BULLET
        assert b.text == "B"
        assert b.id not in forest.root_ids

    def test_ordered_list(self):
        result = walk("1. one\n2. two")
        assert [b.kind for b in result.forest.roots] == [BlockKind.ORDERED] * 2
        assert [b.text for b in result.forest.roots] == ["one", "two"]

    def test_task_list(self):
        result = walk("- [x] done\n- [ ] open")
        roots = result.forest.roots
        assert [b.kind for b in roots] == [BlockKind.TODO, BlockKind.TODO]
        assert [b.done for b in roots] == [True, False]
        assert roots[0].text == "done"

    def test_list_item_with_code_child(self):
        result = walk("- item\n\n  ```\n  code\n  ```")
        item = result.forest.roots[0]
        assert item.text == "item"
        child = result.forest.get(item.children[0])
        assert child.kind == BlockKind.CODE

    def test_quote_container(self):
        result = walk("> quoted\n>\n> - point")
        quote = result.forest.roots[0]
        assert quote.kind == BlockKind.QUOTE_CONTAINER
        assert quote.runs == []
        kinds = [result.forest.get(c).kind for c in quote.children]
        assert kinds == [BlockKind.TEXT, BlockKind.BULLET]

    def test_blocks_added_in_preorder(self):
        result = walk("- A\n  - B\n- C")
        order = [b.text for b in result.forest]
        assert order == ["A", "B", "C"]


# =========================================================================
# Images
# =========================================================================

class TestImages:

    def test_image_paragraph_becomes_image_block(self):
        result = walk("![alt](https://example.com/pic.png)")
        block = result.forest.roots[0]
        assert block.kind == BlockKind.IMAGE
        media = result.media[block.id]
        assert media.source_type == MediaSourceType.URL
        assert media.url == "https://example.com/pic.png"

    def test_relative_path_resolved_against_base_dir(self, tmp_path):
        options = ConvertOptions(image_base_dir=str(tmp_path))
        result = walk("![x](img/a.png)", options=options)
        media = result.media[result.forest.roots[0].id]
        assert media.source_type == MediaSourceType.PATH
        assert media.path == str(tmp_path / "img" / "a.png")

    def test_data_url_decoded(self):
        result = walk("![x](data:image/png;base64,iVBORw0KGgo=)")
        media = result.media[result.forest.roots[0].id]
        assert media.source_type == MediaSourceType.BYTES
        assert media.data.startswith(b"\x89PNG")

    def test_broken_data_url_warns_and_keeps_block(self):
        result = walk("![x](data:image/png;base64,@@@)")
        block = result.forest.roots[0]
        assert block.kind == BlockKind.IMAGE
        assert block.id not in result.media
        assert [w.code for w in result.warnings] == ["IMAGE_SOURCE_INVALID"]

    def test_inline_image_stays_in_text(self):
        result = walk("see ![x](https://example.com/a.png) here")
        block = result.forest.roots[0]
        assert block.kind == BlockKind.TEXT
        assert result.media == {}


# =========================================================================
# Diagrams
# =========================================================================

MERMAID = "```mermaid\ngraph TD\n  A-->B\n```"


class TestDiagrams:

    def test_rendered_diagram_becomes_image(self, tmp_path):
        renderer = MagicMock(spec=MermaidRenderer)
        renderer.render.return_value = b"\x89PNG\r\n\x1a\nfake"
        result = walk(MERMAID, renderer=renderer, work_dir=str(tmp_path))

        block = result.forest.roots[0]
        assert block.kind == BlockKind.IMAGE
        media = result.media[block.id]
        assert media.source_type == MediaSourceType.BYTES
        assert media.data == b"\x89PNG\r\n\x1a\nfake"
        assert media.file_name == "mermaid_1.png"
        source = renderer.render.call_args.args[0]
        assert "A-->B" in source

    def test_render_failure_falls_back_to_code(self, tmp_path):
        renderer = MagicMock(spec=MermaidRenderer)
        renderer.render.side_effect = LarkifyRenderError(
            message="mmdc exited with code 1",
            context={"returncode": 1},
        )
        result = walk(MERMAID, renderer=renderer, work_dir=str(tmp_path))

        block = result.forest.roots[0]
        assert block.kind == BlockKind.CODE
        assert block.language == int(CodeLanguage.PLAIN_TEXT)
        assert "A-->B" in block.text
        assert [w.code for w in result.warnings] == ["DIAGRAM_RENDER_FAILED"]
        assert result.media == {}

    def test_disabled_diagrams_stay_code(self, tmp_path):
        renderer = MagicMock(spec=MermaidRenderer)
        options = ConvertOptions(diagram=DiagramOptions(enabled=False))
        result = walk(MERMAID, options=options, renderer=renderer, work_dir=str(tmp_path))
        assert result.forest.roots[0].kind == BlockKind.CODE
        renderer.render.assert_not_called()
        assert result.warnings == []

    def test_each_diagram_gets_its_own_name(self, tmp_path):
        renderer = MagicMock(spec=MermaidRenderer)
        renderer.render.return_value = b"png"
        result = walk(f"{MERMAID}\n\n{MERMAID}", renderer=renderer, work_dir=str(tmp_path))
        names = [result.media[b.id].file_name for b in result.forest.roots]
        assert names == ["mermaid_1.png", "mermaid_2.png"]


# =========================================================================
# Tables
# =========================================================================

def table_markdown(columns: int, body_rows: int) -> str:
    header = "| " + " | ".join(f"h{c}" for c in range(columns)) + " |"
    sep = "|" + "---|" * columns
    rows = [
        "| " + " | ".join(f"r{r}c{c}" for c in range(columns)) + " |"
        for r in range(body_rows)
    ]
    return "\n".join([header, sep, *rows])


class TestTables:

    def test_small_table_structure(self):
        result = walk(table_markdown(2, 1))
        forest = result.forest
        table = forest.roots[0]
        assert table.kind == BlockKind.TABLE
        assert table.table.row_size == 2
        assert table.table.column_size == 2
        assert len(table.table.column_width) == 2
        assert len(table.children) == 4
        cell = forest.get(table.children[0])
        assert cell.kind == BlockKind.TABLE_CELL
        text = forest.get(cell.children[0])
        assert text.kind == BlockKind.TEXT
        assert text.text == "h0"

    def test_table_blocks_in_preorder(self):
        result = walk(table_markdown(2, 1))
        kinds = [b.kind for b in result.forest]
        assert kinds[:5] == [
            BlockKind.TABLE,
            BlockKind.TABLE_CELL,
            BlockKind.TEXT,
            BlockKind.TABLE_CELL,
            BlockKind.TEXT,
        ]

    def test_wide_table_split_on_row_boundaries(self):
        config = make_config(table_max_cells=20)
        result = walk(table_markdown(10, 4), config=config)
        tables = result.forest.roots
        assert [t.table.row_size for t in tables] == [2, 2, 1]
        for table in tables:
            assert table.table.column_size == 10
            assert table.table.row_size * 10 <= 20
            assert len(table.children) == table.table.row_size * 10
        assert tables[0].table.column_width == tables[2].table.column_width

    def test_cell_order_preserved_across_chunks(self):
        config = make_config(table_max_cells=4)
        result = walk(table_markdown(2, 3), config=config)
        forest = result.forest
        texts = []
        for table in forest.roots:
            for cell_id in table.children:
                cell = forest.get(cell_id)
                texts.append(forest.get(cell.children[0]).text)
        assert texts == ["h0", "h1", "r0c0", "r0c1", "r1c0", "r1c1", "r2c0", "r2c1"]

    def test_row_wider_than_ceiling_warns(self):
        config = make_config(table_max_cells=3)
        result = walk(table_markdown(4, 1), config=config)
        assert [t.table.row_size for t in result.forest.roots] == [1, 1]
        assert [w.code for w in result.warnings] == ["TABLE_TOO_WIDE"]

    def test_styled_cell_text(self):
        result = walk("| a |\n|---|\n| **b** |")
        forest = result.forest
        table = forest.roots[0]
        cell = forest.get(table.children[1])
        assert forest.get(cell.children[0]).runs == [
            StyledTextRun("b", TextStyle(bold=True)),
        ]
