"""Public data models for the larkify SDK.

This module contains the block forest the converter produces, the media
references it records, the upload units the batch planner computes, and
the result types returned by the client.  Everything is a plain dataclass;
the forest is an arena of blocks keyed by temporary id with children held
as id lists.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from enum import Enum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class BlockKind(str, Enum):
    """The kinds of content block the converter emits."""

    TEXT = "text"
    HEADING = "heading"
    BULLET = "bullet"
    ORDERED = "ordered"
    TODO = "todo"
    CODE = "code"
    QUOTE_CONTAINER = "quote_container"
    DIVIDER = "divider"
    IMAGE = "image"
    TABLE = "table"
    TABLE_CELL = "table_cell"


TEXT_LIKE_KINDS: frozenset[BlockKind] = frozenset({
    BlockKind.TEXT,
    BlockKind.HEADING,
    BlockKind.BULLET,
    BlockKind.ORDERED,
    BlockKind.TODO,
    BlockKind.CODE,
})
"""Kinds whose payload is a list of styled text runs."""


class MediaSourceType(str, Enum):
    """Where the bytes of an image come from."""

    URL = "url"
    """An ``http://`` or ``https://`` URL, fetched at upload time."""

    PATH = "path"
    """A local filesystem path, read at upload time."""

    BYTES = "bytes"
    """Bytes already in memory (decoded data URL or rendered diagram)."""


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextStyle:
    """Style bag applied to one text run.

    Frozen so nested inline spans can derive a new ambient style with
    :meth:`merged` without touching their parent's.
    """

    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    underline: bool = False
    inline_code: bool = False
    link: str | None = None

    def merged(self, **changes: object) -> TextStyle:
        return replace(self, **changes)

    @property
    def is_plain(self) -> bool:
        return self == _PLAIN_STYLE


_PLAIN_STYLE = TextStyle()


@dataclass
class StyledTextRun:
    """A content string plus an optional style.

    ``style`` is ``None`` for unstyled text.
    """

    content: str
    style: TextStyle | None = None


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------

@dataclass
class TableProperty:
    """Shape of a table block."""

    row_size: int
    column_size: int
    column_width: list[int] = field(default_factory=list)


@dataclass
class ContentBlock:
    """A node in the output forest.

    Attributes
    ----------
    id:
        Temporary identifier, unique within one conversion.
    kind:
        The block variant.
    runs:
        Styled text for text-like kinds.  Empty for structural kinds.
    level:
        Heading level (1-9) for :attr:`BlockKind.HEADING`.
    done:
        Checked state for :attr:`BlockKind.TODO`.
    language:
        Remote code-language enum value for :attr:`BlockKind.CODE`.
    table:
        Row/column sizes and widths for :attr:`BlockKind.TABLE`.
    children:
        Ordered ids of child blocks.
    """

    id: str
    kind: BlockKind
    runs: list[StyledTextRun] = field(default_factory=list)
    level: int | None = None
    done: bool | None = None
    language: int | None = None
    table: TableProperty | None = None
    children: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        """The displayed text of the block (runs concatenated)."""
        return "".join(run.content for run in self.runs)


class BlockForest:
    """Arena of :class:`ContentBlock` records keyed by temporary id.

    Blocks are stored in insertion order, which the walker guarantees to
    be depth-first pre-order: a parent is always added before its
    descendants, and siblings in render order.
    """

    __slots__ = ("_blocks", "root_ids")

    def __init__(self) -> None:
        self._blocks: dict[str, ContentBlock] = {}
        self.root_ids: list[str] = []

    def add(self, block: ContentBlock, parent_id: str | None = None) -> ContentBlock:
        """Insert *block*, attaching it under *parent_id* or as a root."""
        if block.id in self._blocks:
            raise ValueError(f"duplicate block id {block.id!r}")
        if parent_id is None:
            self.root_ids.append(block.id)
        else:
            self._blocks[parent_id].children.append(block.id)
        self._blocks[block.id] = block
        return block

    def get(self, block_id: str) -> ContentBlock:
        return self._blocks[block_id]

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._blocks

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[ContentBlock]:
        return iter(self._blocks.values())

    @property
    def roots(self) -> list[ContentBlock]:
        return [self._blocks[block_id] for block_id in self.root_ids]

    def of_kind(self, kind: BlockKind) -> list[ContentBlock]:
        return [block for block in self._blocks.values() if block.kind == kind]


# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------

@dataclass
class MediaReference:
    """Where the image for one Image block comes from.

    Exactly one of ``url``, ``path`` or ``data`` is set, matching
    ``source_type``.
    """

    source_type: MediaSourceType
    url: str | None = None
    path: str | None = None
    data: bytes | None = None
    file_name: str | None = None

    @classmethod
    def from_url(cls, url: str) -> MediaReference:
        return cls(source_type=MediaSourceType.URL, url=url)

    @classmethod
    def from_path(cls, path: str) -> MediaReference:
        return cls(source_type=MediaSourceType.PATH, path=path)

    @classmethod
    def from_bytes(cls, data: bytes, file_name: str) -> MediaReference:
        return cls(source_type=MediaSourceType.BYTES, data=data, file_name=file_name)

    def describe(self) -> str:
        """Short human-readable source for logs and warnings."""
        if self.source_type == MediaSourceType.URL:
            return self.url or ""
        if self.source_type == MediaSourceType.PATH:
            return self.path or ""
        return f"<{len(self.data or b'')} bytes:{self.file_name}>"


@dataclass
class ResolvedMedia:
    """Image bytes ready for upload."""

    data: bytes
    file_name: str


# ---------------------------------------------------------------------------
# Conversion results
# ---------------------------------------------------------------------------

@dataclass
class ConversionWarning:
    """A non-fatal issue encountered during conversion or upload.

    Attributes
    ----------
    code:
        A machine-readable warning code (e.g. ``"DIAGRAM_RENDER_FAILED"``).
    message:
        A human-readable description of the issue.
    context:
        Arbitrary structured data for diagnostics.
    """

    code: str
    message: str
    context: dict = field(default_factory=dict)


@dataclass
class ConversionResult:
    """Output of the Markdown-to-blocks conversion phase.

    Attributes
    ----------
    forest:
        The block arena with root ids in document order.
    media:
        Media references keyed by the temporary id of their Image block.
    warnings:
        Non-fatal issues discovered during conversion.
    """

    forest: BlockForest = field(default_factory=BlockForest)
    media: dict[str, MediaReference] = field(default_factory=dict)
    warnings: list[ConversionWarning] = field(default_factory=list)


@dataclass
class UploadUnit:
    """One creation request: direct children attached under an anchor,
    travelling with all of their descendants.

    Attributes
    ----------
    anchor_id:
        The document id, or the temporary id of a block created by an
        earlier unit.
    children:
        Ordered ids of the blocks attached directly under the anchor.
    descendants:
        Ids of every descendant of ``children``, depth-first pre-order.
    """

    anchor_id: str
    children: list[str] = field(default_factory=list)
    descendants: list[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.children) + len(self.descendants)

    @property
    def block_ids(self) -> list[str]:
        return self.children + self.descendants


@dataclass
class UploadResult:
    """Summary of one upload coordinator run."""

    revision_id: int | None
    blocks_created: int = 0
    images_uploaded: int = 0
    warnings: list[ConversionWarning] = field(default_factory=list)


@dataclass
class DocumentResult:
    """Result of a convert, append, or replace call.

    Attributes
    ----------
    document_id:
        The remote document id.
    url:
        Browser URL of the document.
    revision_id:
        Latest document revision seen, or ``None`` when nothing was
        uploaded.
    blocks_created:
        Number of blocks created remotely.
    images_uploaded:
        Number of images uploaded and attached.
    warnings:
        Non-fatal issues from conversion and upload.
    """

    document_id: str
    url: str
    revision_id: int | None
    blocks_created: int = 0
    images_uploaded: int = 0
    warnings: list[ConversionWarning] = field(default_factory=list)
