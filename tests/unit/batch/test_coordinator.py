"""Tests for the upload coordinator and id mapping (batch/coordinator.py)."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from larkify.batch.coordinator import IdMapping, UploadCoordinator
from larkify.batch.planner import BatchPlanner
from larkify.config import LarkifyConfig
from larkify.errors import (
    ErrorCode,
    LarkifyApiError,
    LarkifyMediaNotFoundError,
    LarkifyTransformError,
)
from larkify.models import (
    BlockForest,
    BlockKind,
    ContentBlock,
    MediaReference,
    ResolvedMedia,
    StyledTextRun,
)

DOC = "doc_1"


def make_config(**overrides) -> LarkifyConfig:
    defaults = {"app_id": "cli_test_app", "app_secret": "test_secret_1234"}
    defaults.update(overrides)
    return LarkifyConfig(**defaults)


def relations_for(block_ids, reverse: bool = False, skip: tuple = ()) -> dict:
    """A descendant-creation response mapping ``x`` to ``real_x``."""
    relations = [
        {"temporary_block_id": block_id, "block_id": f"real_{block_id}"}
        for block_id in block_ids
        if block_id not in skip
    ]
    if reverse:
        relations.reverse()
    return {"block_id_relations": relations, "document_revision_id": None}


def echo_api(reverse: bool = False, skip: tuple = (), revisions=None):
    """BlockAPI mock whose responses map every sent block to ``real_<id>``."""
    api = MagicMock()
    revision_iter = iter(revisions or [])

    async def create_descendants(document_id, block_id, children_id, descendants, index=None):
        response = relations_for([d["block_id"] for d in descendants], reverse, skip)
        response["document_revision_id"] = next(revision_iter, None)
        return response

    api.create_descendants = AsyncMock(side_effect=create_descendants)
    api.batch_update = AsyncMock(return_value={"document_revision_id": None})
    return api


def text_and_image_forest() -> tuple[BlockForest, dict[str, MediaReference]]:
    forest = BlockForest()
    forest.add(ContentBlock(id="text_1", kind=BlockKind.TEXT, runs=[StyledTextRun("hi")]))
    forest.add(ContentBlock(id="image_1", kind=BlockKind.IMAGE))
    media = {"image_1": MediaReference.from_bytes(b"\x89PNG\r\n\x1a\n", "a.png")}
    return forest, media


def make_coordinator(block_api, config=None, media_api=None, resolver=None):
    config = config or make_config()
    if media_api is None:
        media_api = MagicMock()
        media_api.upload = AsyncMock(return_value="file_tok")
    if resolver is None:
        resolver = MagicMock()
        resolver.resolve = AsyncMock(return_value=ResolvedMedia(data=b"img", file_name="a.png"))
    return UploadCoordinator(block_api, media_api, resolver, config), media_api, resolver


# =========================================================================
# IdMapping
# =========================================================================

class TestIdMapping:

    def test_record_and_get(self):
        ids = IdMapping()
        ids.record("t1", "r1")
        assert ids.get("t1") == "r1"
        assert "t1" in ids
        assert len(ids) == 1
        assert ids.get("missing") is None

    def test_same_mapping_twice_is_fine(self):
        ids = IdMapping()
        ids.record("t1", "r1")
        ids.record("t1", "r1")
        assert len(ids) == 1

    def test_conflicting_mapping_rejected(self):
        ids = IdMapping()
        ids.record("t1", "r1")
        with pytest.raises(ValueError):
            ids.record("t1", "r2")


# =========================================================================
# Block creation
# =========================================================================

class TestBlockCreation:

    @pytest.mark.asyncio
    async def test_single_unit_payloads(self):
        forest, _ = text_and_image_forest()
        api = echo_api()
        coordinator, _, _ = make_coordinator(api)
        units = BatchPlanner().plan(forest, DOC)

        result = await coordinator.upload(DOC, forest, {}, units, revision_id=3)

        api.create_descendants.assert_awaited_once()
        args = api.create_descendants.call_args.args
        assert args[0] == DOC
        assert args[1] == DOC
        assert args[2] == ["text_1", "image_1"]
        assert [p["block_id"] for p in args[3]] == ["text_1", "image_1"]
        assert result.blocks_created == 2
        assert result.revision_id == 3
        api.batch_update.assert_not_called()

    @pytest.mark.asyncio
    async def test_later_units_use_server_ids_as_anchors(self):
        forest = BlockForest()
        forest.add(ContentBlock(id="r", kind=BlockKind.BULLET))
        for i in range(4):
            forest.add(ContentBlock(id=f"c{i}", kind=BlockKind.BULLET), "r")
        api = echo_api()
        coordinator, _, _ = make_coordinator(api)
        units = BatchPlanner(3).plan(forest, DOC)

        result = await coordinator.upload(DOC, forest, {}, units)

        anchors = [call.args[1] for call in api.create_descendants.call_args_list]
        assert anchors == [DOC, "real_r", "real_r"]
        assert result.blocks_created == 5

    @pytest.mark.asyncio
    async def test_missing_anchor_id_raises(self):
        forest = BlockForest()
        forest.add(ContentBlock(id="r", kind=BlockKind.BULLET))
        for i in range(4):
            forest.add(ContentBlock(id=f"c{i}", kind=BlockKind.BULLET), "r")
        api = echo_api(skip=("r",))
        coordinator, _, _ = make_coordinator(api)
        units = BatchPlanner(3).plan(forest, DOC)

        with pytest.raises(LarkifyTransformError) as exc_info:
            await coordinator.upload(DOC, forest, {}, units)
        assert exc_info.value.context["anchor_id"] == "r"
        assert api.create_descendants.await_count == 1

    @pytest.mark.asyncio
    async def test_revision_tracks_latest_response(self):
        forest = BlockForest()
        for i in range(4):
            forest.add(ContentBlock(id=f"b{i}", kind=BlockKind.TEXT))
        api = echo_api(revisions=[6, 7])
        coordinator, _, _ = make_coordinator(api)
        units = BatchPlanner(3).plan(forest, DOC)
        assert len(units) == 2

        result = await coordinator.upload(DOC, forest, {}, units, revision_id=5)
        assert result.revision_id == 7

    @pytest.mark.asyncio
    async def test_api_failure_propagates(self):
        forest, _ = text_and_image_forest()
        api = MagicMock()
        api.create_descendants = AsyncMock(side_effect=LarkifyApiError(
            message="too many", code=ErrorCode.TOO_MANY_BLOCKS,
        ))
        coordinator, _, _ = make_coordinator(api)
        with pytest.raises(LarkifyApiError):
            await coordinator.upload(DOC, forest, {}, BatchPlanner().plan(forest, DOC))

    @pytest.mark.asyncio
    async def test_blocks_created_metric(self):
        metrics = MagicMock()
        forest, _ = text_and_image_forest()
        coordinator, _, _ = make_coordinator(echo_api(), config=make_config(metrics=metrics))
        await coordinator.upload(DOC, forest, {}, BatchPlanner().plan(forest, DOC))
        metrics.increment.assert_any_call("larkify.blocks_created_total", value=2)

    @pytest.mark.asyncio
    async def test_planned_units_gauge(self):
        metrics = MagicMock()
        forest = BlockForest()
        for i in range(5):
            forest.add(ContentBlock(id=f"p{i}", kind=BlockKind.TEXT, runs=[StyledTextRun("x")]))
        units = BatchPlanner(max_blocks_per_request=3).plan(forest, DOC)
        coordinator, _, _ = make_coordinator(echo_api(), config=make_config(metrics=metrics))
        await coordinator.upload(DOC, forest, {}, units)
        metrics.gauge.assert_called_once_with("larkify.upload_units", float(len(units)))
        assert len(units) == 3


# =========================================================================
# Media attachment
# =========================================================================

class TestMediaAttachment:

    @pytest.mark.asyncio
    async def test_image_uploaded_against_real_id(self):
        forest, media = text_and_image_forest()
        api = echo_api(reverse=True)
        api.batch_update = AsyncMock(return_value={"document_revision_id": 9})
        coordinator, media_api, resolver = make_coordinator(api)

        result = await coordinator.upload(DOC, forest, media, BatchPlanner().plan(forest, DOC))

        media_api.upload.assert_awaited_once_with(b"img", "a.png", "real_image_1")
        api.batch_update.assert_awaited_once_with(
            DOC, [{"block_id": "real_image_1", "replace_image": {"token": "file_tok"}}],
        )
        assert result.images_uploaded == 1
        assert result.revision_id == 9
        assert media == {}
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_unmapped_image_warns(self):
        forest, media = text_and_image_forest()
        api = echo_api(skip=("image_1",))
        coordinator, media_api, _ = make_coordinator(api)

        result = await coordinator.upload(DOC, forest, media, BatchPlanner().plan(forest, DOC))

        media_api.upload.assert_not_called()
        api.batch_update.assert_not_called()
        assert [w.code for w in result.warnings] == ["IMAGE_BLOCK_UNMAPPED"]
        assert result.images_uploaded == 0
        assert media == {}

    @pytest.mark.asyncio
    async def test_one_failed_image_does_not_stop_others(self):
        forest = BlockForest()
        forest.add(ContentBlock(id="img_a", kind=BlockKind.IMAGE))
        forest.add(ContentBlock(id="img_b", kind=BlockKind.IMAGE))
        media = {
            "img_a": MediaReference.from_path("/missing.png"),
            "img_b": MediaReference.from_bytes(b"ok", "b.png"),
        }

        async def resolve(reference, *, download_enabled=True):
            if reference.path == "/missing.png":
                raise LarkifyMediaNotFoundError(
                    message="Image file not found",
                    context={"src": reference.path},
                )
            return ResolvedMedia(data=reference.data, file_name=reference.file_name)

        resolver = MagicMock()
        resolver.resolve = AsyncMock(side_effect=resolve)
        metrics = MagicMock()
        api = echo_api()
        coordinator, media_api, _ = make_coordinator(
            api, config=make_config(metrics=metrics), resolver=resolver,
        )

        result = await coordinator.upload(DOC, forest, media, BatchPlanner().plan(forest, DOC))

        media_api.upload.assert_awaited_once_with(b"ok", "b.png", "real_img_b")
        requests = api.batch_update.call_args.args[1]
        assert requests == [{"block_id": "real_img_b", "replace_image": {"token": "file_tok"}}]
        assert result.images_uploaded == 1
        [warning] = result.warnings
        assert warning.code == "IMAGE_UPLOAD_FAILED"
        assert warning.context["block_id"] == "img_a"
        assert warning.context["error_code"] == ErrorCode.MEDIA_NOT_FOUND
        metrics.increment.assert_any_call("larkify.upload_failure_total")
        metrics.increment.assert_any_call("larkify.upload_success_total")

    @pytest.mark.asyncio
    async def test_requests_follow_block_order(self):
        forest = BlockForest()
        for i in range(5):
            forest.add(ContentBlock(id=f"img_{i}", kind=BlockKind.IMAGE))
        media = {f"img_{i}": MediaReference.from_bytes(b"x", f"{i}.png") for i in range(5)}
        api = echo_api(reverse=True)
        coordinator, _, _ = make_coordinator(api, config=make_config(image_max_concurrent=2))

        await coordinator.upload(DOC, forest, media, BatchPlanner().plan(forest, DOC))

        requests = api.batch_update.call_args.args[1]
        assert [r["block_id"] for r in requests] == [f"real_img_{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_failure_warnings_follow_block_order(self):
        forest = BlockForest()
        for i in range(4):
            forest.add(ContentBlock(id=f"img_{i}", kind=BlockKind.IMAGE))
        media = {f"img_{i}": MediaReference.from_path(f"/missing_{i}.png") for i in range(4)}

        async def resolve(reference, *, download_enabled=True):
            # Earlier images fail later, so completion order is reversed.
            index = int(reference.path[-5])
            await asyncio.sleep(0.01 * (4 - index))
            raise LarkifyMediaNotFoundError(
                message="Image file not found",
                context={"src": reference.path},
            )

        resolver = MagicMock()
        resolver.resolve = AsyncMock(side_effect=resolve)
        coordinator, _, _ = make_coordinator(echo_api(), resolver=resolver)

        result = await coordinator.upload(DOC, forest, media, BatchPlanner().plan(forest, DOC))

        assert [w.context["block_id"] for w in result.warnings] == [f"img_{i}" for i in range(4)]
        assert {w.code for w in result.warnings} == {"IMAGE_UPLOAD_FAILED"}

    @pytest.mark.asyncio
    async def test_download_flag_passed_to_resolver(self):
        forest, media = text_and_image_forest()
        coordinator, _, resolver = make_coordinator(echo_api())
        await coordinator.upload(
            DOC, forest, media, BatchPlanner().plan(forest, DOC),
            download_remote_images=False,
        )
        assert resolver.resolve.call_args.kwargs == {"download_enabled": False}

    @pytest.mark.asyncio
    async def test_image_without_media_is_left_alone(self):
        forest, _ = text_and_image_forest()
        coordinator, media_api, _ = make_coordinator(echo_api())
        result = await coordinator.upload(DOC, forest, {}, BatchPlanner().plan(forest, DOC))
        media_api.upload.assert_not_called()
        assert result.warnings == []
