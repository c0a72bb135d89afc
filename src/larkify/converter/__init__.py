"""Markdown → docx block conversion pipeline.

Public API:

- :class:`MarkdownToLarkConverter`: Markdown → block forest.
- :class:`ASTNormalizer`: parse and normalize Markdown to canonical AST.
- :func:`build_forest`: walk normalized AST into a :class:`BlockForest`.
- :func:`build_text_runs`: flatten inline AST tokens into styled runs.
- :func:`block_to_payload`: serialize a block for the remote API.
"""

from larkify.converter.ast_normalizer import ASTNormalizer
from larkify.converter.block_builder import build_forest
from larkify.converter.md_to_lark import MarkdownToLarkConverter
from larkify.converter.payload import block_to_payload
from larkify.converter.rich_text import build_text_runs

__all__ = [
    "ASTNormalizer",
    "MarkdownToLarkConverter",
    "block_to_payload",
    "build_forest",
    "build_text_runs",
]
