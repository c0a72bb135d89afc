"""Upload coordinator: submit planned units and attach media.

Units are submitted one at a time, in plan order, because a later unit may
be anchored on a block an earlier unit created.  Every response carries
``(temporary id, real id)`` relations that are recorded in an
:class:`IdMapping` before the next unit goes out.

Once the whole tree exists, each Image block with a media reference has its
bytes resolved and uploaded against the block's real id.  Uploads run
concurrently under a semaphore; the resulting ``replace_image`` requests
are collected in block order and applied in one batch update.  A failing
image is logged, recorded as a warning, and skipped.
"""

from __future__ import annotations

import asyncio
from typing import Any

from larkify.config import LarkifyConfig
from larkify.converter.payload import block_to_payload
from larkify.errors import LarkifyError, LarkifyTransformError
from larkify.lark_api.blocks import BlockAPI, extract_id_relations
from larkify.lark_api.medias import MediaAPI
from larkify.media.resolve import MediaResolver
from larkify.models import (
    BlockForest,
    BlockKind,
    ConversionWarning,
    MediaReference,
    UploadResult,
    UploadUnit,
)
from larkify.observability import NoopMetricsHook, get_logger

log = get_logger("larkify.batch")


class IdMapping:
    """Temporary id to server id table for one conversion.

    Entries are only ever added.  Recording a different server id for a
    temporary id that is already mapped is an error.
    """

    __slots__ = ("_ids",)

    def __init__(self) -> None:
        self._ids: dict[str, str] = {}

    def record(self, temp_id: str, real_id: str) -> None:
        existing = self._ids.get(temp_id)
        if existing is not None and existing != real_id:
            raise ValueError(
                f"temporary id {temp_id!r} already mapped to {existing!r}, not {real_id!r}"
            )
        self._ids[temp_id] = real_id

    def get(self, temp_id: str) -> str | None:
        return self._ids.get(temp_id)

    def __contains__(self, temp_id: object) -> bool:
        return temp_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)


class UploadCoordinator:
    """Drive block creation and media attachment for one document.

    Parameters
    ----------
    block_api:
        Block endpoints.
    media_api:
        Media upload endpoint.
    resolver:
        Turns media references into bytes.
    config:
        SDK configuration (upload concurrency, metrics).
    """

    def __init__(
        self,
        block_api: BlockAPI,
        media_api: MediaAPI,
        resolver: MediaResolver,
        config: LarkifyConfig,
    ) -> None:
        self._blocks = block_api
        self._medias = media_api
        self._resolver = resolver
        self._config = config
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

    async def upload(
        self,
        document_id: str,
        forest: BlockForest,
        media: dict[str, MediaReference],
        units: list[UploadUnit],
        *,
        revision_id: int | None = None,
        download_remote_images: bool = True,
    ) -> UploadResult:
        """Create every planned unit, then attach media.

        Parameters
        ----------
        document_id:
            Target document.  Units anchored at it attach to the root.
        forest:
            The forest the units were planned from.
        media:
            Media references keyed by Image block temporary id.  Entries
            are removed as they are attached or dropped.
        units:
            Planned units, submitted strictly in order.
        revision_id:
            Revision before any unit is submitted.  Returned unchanged if
            no response reports a newer one.
        download_remote_images:
            When ``False`` remote images are skipped with a warning.

        Returns
        -------
        UploadResult
            Latest revision, counts and per-image warnings.

        Raises
        ------
        LarkifyTransformError
            If a unit is anchored on a block whose server id never came
            back.
        LarkifyApiError
            If a unit submission fails permanently.
        """
        ids = IdMapping()
        result = UploadResult(revision_id=revision_id)
        self._metrics.gauge("larkify.upload_units", float(len(units)))

        for index, unit in enumerate(units):
            anchor = self._resolve_anchor(unit.anchor_id, document_id, ids)
            payloads = [block_to_payload(forest.get(block_id)) for block_id in unit.block_ids]
            response = await self._blocks.create_descendants(
                document_id,
                anchor,
                list(unit.children),
                payloads,
            )
            for temp_id, real_id in extract_id_relations(response):
                ids.record(temp_id, real_id)

            revision = response.get("document_revision_id")
            if revision is not None:
                result.revision_id = revision
            result.blocks_created += unit.size
            self._metrics.increment("larkify.blocks_created_total", value=unit.size)
            log.info(
                "Created blocks",
                extra={
                    "extra_fields": {
                        "op": "create_descendants",
                        "document_id": document_id,
                        "unit": index + 1,
                        "units": len(units),
                        "blocks": unit.size,
                        "revision_id": result.revision_id,
                    }
                },
            )

        requests = await self._upload_media(forest, media, ids, download_remote_images, result)
        if requests:
            response = await self._blocks.batch_update(document_id, requests)
            revision = response.get("document_revision_id")
            if revision is not None:
                result.revision_id = revision
            result.images_uploaded = len(requests)
        return result

    # -- internals ---------------------------------------------------------

    def _resolve_anchor(self, anchor_id: str, document_id: str, ids: IdMapping) -> str:
        if anchor_id == document_id:
            return document_id
        real_id = ids.get(anchor_id)
        if real_id is None:
            raise LarkifyTransformError(
                message=f"No server id was returned for anchor block {anchor_id}",
                context={"document_id": document_id, "anchor_id": anchor_id},
            )
        return real_id

    async def _upload_media(
        self,
        forest: BlockForest,
        media: dict[str, MediaReference],
        ids: IdMapping,
        download_remote_images: bool,
        result: UploadResult,
    ) -> list[dict[str, Any]]:
        """Upload every resolvable image and return the update requests."""
        jobs: list[tuple[str, str, MediaReference]] = []
        for block in forest.of_kind(BlockKind.IMAGE):
            reference = media.get(block.id)
            if reference is None:
                continue
            real_id = ids.get(block.id)
            if real_id is None:
                media.pop(block.id)
                self._warn(
                    result,
                    "IMAGE_BLOCK_UNMAPPED",
                    f"No server id was returned for image block {block.id}; image skipped",
                    block_id=block.id,
                    src=reference.describe(),
                )
                continue
            jobs.append((block.id, real_id, reference))

        if not jobs:
            return []

        semaphore = asyncio.Semaphore(self._config.image_max_concurrent)

        async def attach(
            block_id: str, real_id: str, reference: MediaReference,
        ) -> tuple[dict | None, ConversionWarning | None]:
            async with semaphore:
                return await self._upload_one(
                    block_id, real_id, reference, download_remote_images,
                )

        outcomes = await asyncio.gather(*(attach(*job) for job in jobs))

        requests: list[dict[str, Any]] = []
        for (block_id, _, _), (request, warning) in zip(jobs, outcomes):
            media.pop(block_id, None)
            if warning is not None:
                result.warnings.append(warning)
            if request is not None:
                requests.append(request)
        return requests

    async def _upload_one(
        self,
        block_id: str,
        real_id: str,
        reference: MediaReference,
        download_remote_images: bool,
    ) -> tuple[dict[str, Any] | None, ConversionWarning | None]:
        """Upload one image; failures come back as a warning, not raised."""
        try:
            resolved = await self._resolver.resolve(
                reference, download_enabled=download_remote_images,
            )
            token = await self._medias.upload(resolved.data, resolved.file_name, real_id)
        except LarkifyError as exc:
            self._metrics.increment("larkify.upload_failure_total")
            return None, self._warning(
                "IMAGE_UPLOAD_FAILED",
                f"Image could not be attached: {exc.message}",
                block_id=block_id,
                src=reference.describe(),
                error_code=exc.code,
            )

        self._metrics.increment("larkify.upload_success_total")
        return {"block_id": real_id, "replace_image": {"token": token}}, None

    def _warning(self, code: str, message: str, **context: Any) -> ConversionWarning:
        log.warning(message, extra={"extra_fields": {"op": "upload_media", "code": code, **context}})
        return ConversionWarning(code=code, message=message, context=context)

    def _warn(self, result: UploadResult, code: str, message: str, **context: Any) -> None:
        result.warnings.append(self._warning(code, message, **context))
