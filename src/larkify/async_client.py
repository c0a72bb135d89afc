"""Asynchronous larkify client.

:class:`AsyncLarkifyClient` converts Markdown into a docx document: it
walks the Markdown into a block forest, plans creation requests under the
per-request block ceiling, submits them in order, and attaches images.

Usage::

    import asyncio
    from larkify import AsyncLarkifyClient, ConvertOptions

    async def main():
        async with AsyncLarkifyClient(app_id="cli_xxx", app_secret="xxx") as client:
            result = await client.convert(
                "# Hello\\n\\nWorld",
                ConvertOptions(title="My Doc"),
            )
            print(result.url)

    asyncio.run(main())
"""

from __future__ import annotations

import tempfile
from typing import Any

from larkify.batch import BatchPlanner, UploadCoordinator
from larkify.config import ConvertOptions, LarkifyConfig
from larkify.converter.md_to_lark import MarkdownToLarkConverter
from larkify.diagram import MermaidRenderer
from larkify.errors import (
    ErrorCode,
    LarkifyApiError,
    LarkifyConfigurationError,
    LarkifyError,
    LarkifyTransformError,
)
from larkify.lark_api import (
    AsyncLarkTransport,
    BlockAPI,
    DocumentAPI,
    MediaAPI,
    PermissionAPI,
)
from larkify.media import MediaResolver
from larkify.models import ConversionResult, ConversionWarning, DocumentResult
from larkify.observability import NoopMetricsHook, get_logger

log = get_logger("larkify.client")


class AsyncLarkifyClient:
    """Asynchronous Markdown-to-docx client.

    Parameters
    ----------
    app_id:
        Open-platform application id.
    app_secret:
        Open-platform application secret.
    **kwargs:
        All remaining keyword arguments are forwarded to
        :class:`LarkifyConfig`.

    Raises
    ------
    LarkifyConfigurationError
        If neither ``app_id``/``app_secret`` nor ``user_access_token`` is
        given.
    """

    def __init__(self, app_id: str = "", app_secret: str = "", **kwargs: Any) -> None:
        """Create client.  All kwargs are forwarded to LarkifyConfig."""
        self._config = LarkifyConfig(app_id=app_id, app_secret=app_secret, **kwargs)
        if not self._config.has_credentials:
            missing = [
                name for name in ("app_id", "app_secret")
                if not getattr(self._config, name)
            ]
            raise LarkifyConfigurationError(
                message="Missing credentials: set app_id and app_secret, or user_access_token",
                context={"missing": missing},
            )
        self._metrics = (
            self._config.metrics if self._config.metrics is not None else NoopMetricsHook()
        )
        self._transport = AsyncLarkTransport(self._config)
        self._documents = DocumentAPI(self._transport)
        self._blocks = BlockAPI(self._transport)
        self._medias = MediaAPI(self._transport)
        self._permissions = PermissionAPI(self._transport)
        self._resolver = MediaResolver(self._config)
        self._converter = MarkdownToLarkConverter(self._config, MermaidRenderer())
        self._coordinator = UploadCoordinator(
            self._blocks, self._medias, self._resolver, self._config,
        )

    @property
    def config(self) -> LarkifyConfig:
        return self._config

    def document_url(self, document_id: str) -> str:
        """Browser URL of a document."""
        return f"{self._config.document_url_base.rstrip('/')}/{document_id}"

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def parse(self, markdown: str, options: ConvertOptions | None = None) -> ConversionResult:
        """Convert *markdown* to a block forest without any network call.

        Diagrams are still rendered when enabled.
        """
        return self._converter.convert(markdown, options)

    async def convert(
        self,
        markdown: str,
        options: ConvertOptions | None = None,
    ) -> DocumentResult:
        """Create a new document from Markdown.

        Parameters
        ----------
        markdown:
            Raw Markdown text to convert.
        options:
            Title, destination folder, image and diagram settings.

        Returns
        -------
        DocumentResult

        Raises
        ------
        LarkifyParseError
            If the Markdown cannot be parsed.
        LarkifyTransformError
            If the Markdown produces no blocks, or document creation
            returns no document id.
        LarkifyApiError
            If a creation request fails permanently.
        """
        options = options or ConvertOptions()
        with tempfile.TemporaryDirectory(prefix="larkify-") as work_dir:
            conversion = await self._converter.convert_async(markdown, options, work_dir)
            if not len(conversion.forest):
                raise LarkifyTransformError(
                    message="No content to convert",
                    context={"length": len(markdown)},
                )

            document = await self._documents.create(options.title, options.folder_token)
            document_id = document.get("document_id")
            if not document_id:
                raise LarkifyTransformError(
                    message="Document creation returned no document_id",
                    context={"field": "document_id", "title": options.title},
                )
            log.info(
                "Created document",
                extra={"extra_fields": {"op": "convert", "document_id": document_id}},
            )

            result = await self._upload(
                document_id, conversion, options, document.get("revision_id"),
            )
        await self._apply_ownership(document_id, result.warnings)
        return result

    async def append(
        self,
        document_id: str,
        markdown: str,
        options: ConvertOptions | None = None,
    ) -> DocumentResult:
        """Append Markdown to the end of an existing document.

        Empty Markdown is not an error: nothing is uploaded and the result
        has ``revision_id=None``.
        """
        options = options or ConvertOptions()
        with tempfile.TemporaryDirectory(prefix="larkify-") as work_dir:
            conversion = await self._converter.convert_async(markdown, options, work_dir)
            if not len(conversion.forest):
                return DocumentResult(
                    document_id=document_id,
                    url=self.document_url(document_id),
                    revision_id=None,
                    warnings=list(conversion.warnings),
                )
            return await self._upload(document_id, conversion, options, None)

    async def replace(
        self,
        document_id: str,
        markdown: str,
        options: ConvertOptions | None = None,
    ) -> DocumentResult:
        """Delete every top-level block of a document, then append *markdown*."""
        count = 0
        async for _ in self._blocks.iter_children(document_id, document_id):
            count += 1
        if count:
            await self._blocks.delete_children(document_id, document_id, 0, count)
            log.info(
                "Deleted existing blocks",
                extra={"extra_fields": {"op": "replace", "document_id": document_id, "blocks": count}},
            )
        return await self.append(document_id, markdown, options)

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    async def transfer_ownership(
        self,
        document_id: str,
        email: str | None = None,
        user_id: str | None = None,
    ) -> str:
        """Make a user the owner of a document.  Returns the user id."""
        member_id = await self._resolve_user(email, user_id)
        await self._permissions.transfer_owner(document_id, member_id)
        return member_id

    async def add_collaborator(
        self,
        document_id: str,
        email: str | None = None,
        user_id: str | None = None,
        perm: str | None = None,
    ) -> str:
        """Grant a user access to a document.  Returns the user id."""
        member_id = await self._resolve_user(email, user_id)
        await self._permissions.add_collaborator(
            document_id, member_id, perm or self._config.collaborator_perm,
        )
        return member_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the HTTP transport and the media client."""
        await self._resolver.close()
        await self._transport.close()

    async def __aenter__(self) -> AsyncLarkifyClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _upload(
        self,
        document_id: str,
        conversion: ConversionResult,
        options: ConvertOptions,
        revision_id: int | None,
    ) -> DocumentResult:
        ceiling = options.max_blocks_per_request or self._config.max_blocks_per_request
        units = BatchPlanner(ceiling).plan(conversion.forest, document_id)
        uploaded = await self._coordinator.upload(
            document_id,
            conversion.forest,
            conversion.media,
            units,
            revision_id=revision_id,
            download_remote_images=options.download_remote_images,
        )

        warnings = list(conversion.warnings) + uploaded.warnings
        if warnings:
            self._metrics.increment("larkify.conversion_warnings_total", value=len(warnings))
        return DocumentResult(
            document_id=document_id,
            url=self.document_url(document_id),
            revision_id=uploaded.revision_id,
            blocks_created=uploaded.blocks_created,
            images_uploaded=uploaded.images_uploaded,
            warnings=warnings,
        )

    async def _resolve_user(self, email: str | None, user_id: str | None) -> str:
        if user_id:
            return user_id
        if not email:
            raise ValueError("either email or user_id is required")
        resolved = await self._permissions.lookup_user_id(email)
        if resolved is None:
            raise LarkifyApiError(
                message=f"No user found for email {email}",
                context={"email": email},
                code=ErrorCode.NOT_FOUND,
            )
        return resolved

    async def _apply_ownership(self, document_id: str, warnings: list[ConversionWarning]) -> None:
        """Transfer a new document to the configured owner, if any.

        The document already exists at this point, so a failure is
        reported as a warning.
        """
        email = self._config.owner_email
        user_id = self._config.owner_user_id
        if not email and not user_id:
            return
        try:
            await self.transfer_ownership(document_id, email=email, user_id=user_id)
        except LarkifyError as exc:
            log.warning(
                "Ownership transfer failed",
                extra={"extra_fields": {"op": "transfer_owner", "document_id": document_id, "error": exc.message}},
            )
            warnings.append(ConversionWarning(
                code="OWNERSHIP_TRANSFER_FAILED",
                message=f"Ownership transfer failed: {exc.message}",
                context={"document_id": document_id, "error_code": exc.code},
            ))
