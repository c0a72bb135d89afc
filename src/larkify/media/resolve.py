"""Resolve a :class:`MediaReference` to image bytes ready for upload.

Remote URLs are streamed through ``httpx.AsyncClient`` with a size cap and
a timeout; local files are read in an executor; in-memory bytes pass
through after the same size check.
"""

from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath
from typing import Any
from urllib.parse import unquote, urlparse

import httpx

from larkify.config import LarkifyConfig
from larkify.errors import LarkifyMediaError, LarkifyMediaNotFoundError
from larkify.models import MediaReference, MediaSourceType, ResolvedMedia
from larkify.observability import get_logger

from .validate import check_size, ensure_extension, truncate_src

log = get_logger("larkify.media")

DEFAULT_FILE_NAME = "image"


class MediaResolver:
    """Turn media references into bytes.

    Parameters
    ----------
    config:
        SDK configuration: size cap, download timeout and proxy.
    client:
        HTTP client for remote fetches.  When omitted the resolver creates
        one and closes it in :meth:`close`.
    """

    def __init__(
        self,
        config: LarkifyConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(
            timeout=httpx.Timeout(config.image_download_timeout),
            proxy=config.http_proxy,
            follow_redirects=True,
        )

    async def resolve(
        self,
        reference: MediaReference,
        *,
        download_enabled: bool = True,
    ) -> ResolvedMedia:
        """Fetch, read or pass through the bytes behind *reference*.

        Raises
        ------
        LarkifyMediaError
            On a failed or disabled download, or an unreadable file.
        LarkifyMediaNotFoundError
            If a local file does not exist.
        LarkifyMediaSizeError
            If the image exceeds ``config.image_max_size_bytes``.
        """
        if reference.source_type == MediaSourceType.URL:
            return await self._fetch(reference.url or "", download_enabled)
        if reference.source_type == MediaSourceType.PATH:
            return await self._read(reference.path or "")

        data = reference.data or b""
        check_size(len(data), self._config.image_max_size_bytes, reference.describe())
        file_name = ensure_extension(reference.file_name or DEFAULT_FILE_NAME, data)
        return ResolvedMedia(data=data, file_name=file_name)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> MediaResolver:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # -- internals ---------------------------------------------------------

    async def _fetch(self, url: str, download_enabled: bool) -> ResolvedMedia:
        if not download_enabled:
            raise LarkifyMediaError(
                message=f"Remote image download is disabled: {truncate_src(url)}",
                context={"src": truncate_src(url), "reason": "download_disabled"},
            )

        max_bytes = self._config.image_max_size_bytes
        chunks: list[bytes] = []
        total = 0
        try:
            async with self._client.stream(
                "GET",
                url,
                timeout=self._config.image_download_timeout,
            ) as response:
                if response.status_code >= 400:
                    raise LarkifyMediaError(
                        message=f"Image download failed with HTTP {response.status_code}",
                        context={"src": truncate_src(url), "status_code": response.status_code},
                    )
                declared = response.headers.get("content-length")
                if declared and declared.isdigit():
                    check_size(int(declared), max_bytes, url)
                content_type = response.headers.get("content-type")
                async for chunk in response.aiter_bytes():
                    total += len(chunk)
                    check_size(total, max_bytes, url)
                    chunks.append(chunk)
        except httpx.HTTPError as exc:
            raise LarkifyMediaError(
                message=f"Image download failed: {exc}",
                context={"src": truncate_src(url), "reason": type(exc).__name__},
                cause=exc,
            ) from exc

        data = b"".join(chunks)
        if not data:
            raise LarkifyMediaError(
                message="Image download returned no data",
                context={"src": truncate_src(url)},
            )
        name = unquote(PurePosixPath(urlparse(url).path).name) or DEFAULT_FILE_NAME
        log.debug(
            "Downloaded image",
            extra={"extra_fields": {"op": "download", "src": truncate_src(url), "bytes": len(data)}},
        )
        return ResolvedMedia(data=data, file_name=ensure_extension(name, data, content_type))

    async def _read(self, path: str) -> ResolvedMedia:
        file_path = Path(path)
        if not file_path.is_file():
            raise LarkifyMediaNotFoundError(
                message=f"Image file not found: {path}",
                context={"src": path, "resolved_path": str(file_path)},
            )

        try:
            check_size(file_path.stat().st_size, self._config.image_max_size_bytes, path)
            # Read file bytes in an executor to avoid blocking the event loop.
            loop = asyncio.get_running_loop()
            data = await loop.run_in_executor(None, file_path.read_bytes)
        except OSError as exc:
            raise LarkifyMediaError(
                message=f"Failed to read image file: {exc}",
                context={"src": path},
                cause=exc,
            ) from exc

        return ResolvedMedia(data=data, file_name=ensure_extension(file_path.name, data))
