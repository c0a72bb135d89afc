"""larkify: Markdown to Feishu/Lark docx SDK.

Public re-exports
-----------------

* **Client:** :class:`AsyncLarkifyClient`
* **Configuration:** :class:`LarkifyConfig`, :class:`ConvertOptions`,
  :class:`DiagramOptions`
* **Errors:** Every :class:`LarkifyError` subclass and :class:`ErrorCode`
* **Models:** Result dataclasses, the block forest, and supporting types

Usage::

    from larkify import AsyncLarkifyClient

    async with AsyncLarkifyClient(app_id="cli_xxx", app_secret="xxx") as client:
        result = await client.convert("# Hello\\n\\nWorld")
        print(result.document_id, result.url)
"""

from __future__ import annotations

# ── Client ─────────────────────────────────────────────────────────────
from larkify.async_client import AsyncLarkifyClient

# ── Batching ───────────────────────────────────────────────────────────
from larkify.batch import BatchPlanner, IdMapping, UploadCoordinator

# ── Configuration ───────────────────────────────────────────────────────
from larkify.config import (
    DEFAULT_MAX_BLOCKS_PER_REQUEST,
    DEFAULT_TABLE_MAX_CELLS,
    ConvertOptions,
    DiagramOptions,
    LarkifyConfig,
)

# ── Errors ──────────────────────────────────────────────────────────────
from larkify.errors import (
    ErrorCode,
    LarkifyApiError,
    LarkifyConfigurationError,
    LarkifyError,
    LarkifyMediaError,
    LarkifyMediaNotFoundError,
    LarkifyMediaParseError,
    LarkifyMediaSizeError,
    LarkifyNetworkError,
    LarkifyParseError,
    LarkifyPermissionError,
    LarkifyRateLimitError,
    LarkifyRenderError,
    LarkifyRetryExhaustedError,
    LarkifyTransformError,
)

# ── Models ──────────────────────────────────────────────────────────────
from larkify.models import (
    BlockForest,
    BlockKind,
    ContentBlock,
    ConversionResult,
    ConversionWarning,
    DocumentResult,
    MediaReference,
    MediaSourceType,
    StyledTextRun,
    TableProperty,
    TextStyle,
    UploadResult,
    UploadUnit,
)

# ── Public surface ──────────────────────────────────────────────────────

__all__ = [
    # Client
    "AsyncLarkifyClient",
    # Configuration
    "LarkifyConfig",
    "ConvertOptions",
    "DiagramOptions",
    "DEFAULT_MAX_BLOCKS_PER_REQUEST",
    "DEFAULT_TABLE_MAX_CELLS",
    # Batching
    "BatchPlanner",
    "IdMapping",
    "UploadCoordinator",
    # Error base + code enum
    "LarkifyError",
    "ErrorCode",
    # Local pipeline errors
    "LarkifyConfigurationError",
    "LarkifyParseError",
    "LarkifyTransformError",
    "LarkifyRenderError",
    # Media errors
    "LarkifyMediaError",
    "LarkifyMediaNotFoundError",
    "LarkifyMediaSizeError",
    "LarkifyMediaParseError",
    # API / transport errors
    "LarkifyApiError",
    "LarkifyRateLimitError",
    "LarkifyPermissionError",
    "LarkifyNetworkError",
    "LarkifyRetryExhaustedError",
    # Models: results
    "DocumentResult",
    "UploadResult",
    "ConversionResult",
    "ConversionWarning",
    # Models: forest
    "BlockForest",
    "BlockKind",
    "ContentBlock",
    "StyledTextRun",
    "TextStyle",
    "TableProperty",
    "UploadUnit",
    # Models: media
    "MediaReference",
    "MediaSourceType",
]
