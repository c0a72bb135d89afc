"""Full Markdown-to-blocks conversion pipeline.

:class:`MarkdownToLarkConverter` orchestrates three stages:

1. **Parse**: mistune parses raw Markdown into an AST.
2. **Normalize**: :class:`ASTNormalizer` maps token types to canonical names.
3. **Walk**: :func:`build_forest` turns normalized tokens into a
   :class:`BlockForest`, collecting :class:`MediaReference` entries and
   :class:`ConversionWarning` along the way.

No network call happens here.
"""

from __future__ import annotations

import asyncio
import functools
import json
import sys
import tempfile

from larkify.config import ConvertOptions, LarkifyConfig
from larkify.converter.ast_normalizer import ASTNormalizer
from larkify.converter.block_builder import build_forest
from larkify.converter.payload import block_to_payload
from larkify.diagram import MermaidRenderer
from larkify.models import ConversionResult
from larkify.utils.redact import redact


class MarkdownToLarkConverter:
    """Convert Markdown text to a docx block forest.

    Parameters
    ----------
    config:
        SDK configuration.
    renderer:
        Diagram renderer.  Defaults to a :class:`MermaidRenderer`.

    Examples
    --------
    >>> from larkify.config import LarkifyConfig
    >>> converter = MarkdownToLarkConverter(LarkifyConfig())
    >>> result = converter.convert("# Hello\\n\\nWorld")
    >>> len(result.forest)
    2
    >>> result.forest.roots[0].kind.value
    'heading'
    """

    def __init__(
        self,
        config: LarkifyConfig,
        renderer: MermaidRenderer | None = None,
    ) -> None:
        self._config = config
        self._normalizer = ASTNormalizer()
        self._renderer = renderer if renderer is not None else MermaidRenderer()

    def convert(
        self,
        markdown: str,
        options: ConvertOptions | None = None,
        work_dir: str | None = None,
    ) -> ConversionResult:
        """Parse, normalize and walk *markdown*.

        Parameters
        ----------
        markdown:
            Raw Markdown text to convert.
        options:
            Per-call options.  Defaults to :class:`ConvertOptions`.
        work_dir:
            Scratch directory for diagram rendering.  When ``None`` a
            temporary directory lives for the duration of this call.

        Returns
        -------
        ConversionResult
            The block forest, media references and warnings.

        Raises
        ------
        LarkifyParseError
            If the Markdown parser fails.
        """
        options = options or ConvertOptions()
        tokens = self._normalizer.parse(markdown)

        if work_dir is None:
            with tempfile.TemporaryDirectory(prefix="larkify-") as tmp:
                result = self._walk(tokens, options, tmp)
        else:
            result = self._walk(tokens, options, work_dir)

        if self._config.debug_dump_payload:
            payload = [block_to_payload(block) for block in result.forest]
            safe = redact({"blocks": payload})
            print(
                "[larkify] Block payload:",
                json.dumps(safe["blocks"], indent=2, ensure_ascii=False),
                file=sys.stderr,
            )
        return result

    async def convert_async(
        self,
        markdown: str,
        options: ConvertOptions | None = None,
        work_dir: str | None = None,
    ) -> ConversionResult:
        """Run :meth:`convert` in the default executor.

        Diagram rendering waits on an external process, so coroutines use
        this entry point to keep the event loop responsive.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, functools.partial(self.convert, markdown, options, work_dir),
        )

    def _walk(self, tokens: list[dict], options: ConvertOptions, work_dir: str) -> ConversionResult:
        return build_forest(
            tokens,
            config=self._config,
            options=options,
            renderer=self._renderer,
            work_dir=work_dir,
        )
