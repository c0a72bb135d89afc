"""Table layout helpers: row extraction, column widths and row chunking.

The normalized table token produced by mistune's ``table`` plugin looks
like::

    {
        "type": "table",
        "children": [
            {"type": "table_head", "children": [<table_cell>, ...]},
            {"type": "table_body", "children": [
                {"type": "table_row", "children": [<table_cell>, ...]},
                ...
            ]},
        ],
    }

A docx table block carries every cell as a child block, so one table with
many cells can blow past the per-request block ceiling on its own.  Tables
are therefore split into sibling tables on row boundaries, each holding at
most ``max_cells`` cells.
"""

from __future__ import annotations

from typing import Any

from larkify.converter.rich_text import extract_text

MAX_TABLE_WIDTH = 820
"""Total width a table may grow to when spreading leftover space."""

FLEXIBLE_COLUMN_WIDTH = 130

# (max text length, width) buckets for narrow columns.
_NARROW_WIDTHS: tuple[tuple[int, int], ...] = (
    (2, 50),
    (4, 80),
    (5, 100),
    (6, 120),
)


def table_rows(token: dict[str, Any]) -> list[list[list[dict]]]:
    """Return the rows of a table token, header first.

    Each row is a list of cells and each cell is its list of inline tokens.
    """
    rows: list[list[list[dict]]] = []
    for child in token.get("children", []):
        child_type = child.get("type", "")
        if child_type == "table_head":
            rows.append(_row_cells(child.get("children", [])))
        elif child_type == "table_body":
            for row in child.get("children", []):
                if row.get("type") == "table_row":
                    rows.append(_row_cells(row.get("children", [])))
    return rows


def _row_cells(cells: list[dict]) -> list[list[dict]]:
    return [
        cell.get("children", [])
        for cell in cells
        if cell.get("type") == "table_cell"
    ]


def compute_column_widths(rows_text: list[list[str]], columns: int) -> list[int]:
    """Pick a display width for every column.

    A column's width is bucketed from the longest text in it: up to 2
    characters gives 50, up to 4 gives 80, 5 gives 100, 6 gives 120, and
    anything longer is a flexible column of 130.  While the total stays
    under :data:`MAX_TABLE_WIDTH` the leftover is shared evenly between
    the flexible columns.

    Parameters
    ----------
    rows_text:
        Plain text of every cell, row-major.  Short rows are allowed.
    columns:
        Number of columns in the table.
    """
    longest = [0] * columns
    for row in rows_text:
        for index, text in enumerate(row[:columns]):
            longest[index] = max(longest[index], len(text))

    widths: list[int] = []
    flexible: list[int] = []
    for index, length in enumerate(longest):
        for limit, width in _NARROW_WIDTHS:
            if length <= limit:
                widths.append(width)
                break
        else:
            widths.append(FLEXIBLE_COLUMN_WIDTH)
            flexible.append(index)

    leftover = MAX_TABLE_WIDTH - sum(widths)
    if flexible and leftover > 0:
        extra = leftover // len(flexible)
        for index in flexible:
            widths[index] += extra
    return widths


def rows_per_chunk(columns: int, max_cells: int) -> int:
    """Number of rows one table chunk may hold (at least one)."""
    if columns <= 0:
        return 1
    return max(max_cells // columns, 1)


def chunk_rows(rows: list[Any], columns: int, max_cells: int) -> list[list[Any]]:
    """Split *rows* into consecutive chunks of at most *max_cells* cells.

    A row wider than *max_cells* still gets a chunk of its own; rows are
    never split.

    >>> [len(c) for c in chunk_rows(list(range(5)), columns=10, max_cells=20)]
    [2, 2, 1]
    """
    size = rows_per_chunk(columns, max_cells)
    return [rows[start:start + size] for start in range(0, len(rows), size)]


def cell_texts(rows: list[list[list[dict]]]) -> list[list[str]]:
    """Plain text of every cell, for width computation."""
    return [[extract_text(cell) for cell in row] for row in rows]
