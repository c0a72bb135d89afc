"""Tests for image source detection, validation and resolution."""

from __future__ import annotations

import base64
from pathlib import Path

import httpx
import pytest

from larkify.config import LarkifyConfig
from larkify.errors import (
    ErrorCode,
    LarkifyMediaError,
    LarkifyMediaNotFoundError,
    LarkifyMediaParseError,
    LarkifyMediaSizeError,
)
from larkify.media import (
    MediaResolver,
    check_size,
    extension_for_mime,
    parse_data_uri,
    parse_image_source,
    sniff_mime,
)
from larkify.media.validate import ensure_extension, truncate_src
from larkify.models import MediaReference, MediaSourceType

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 16


def make_config(**overrides) -> LarkifyConfig:
    defaults = {"app_id": "cli_test_app", "app_secret": "test_secret_1234"}
    defaults.update(overrides)
    return LarkifyConfig(**defaults)


def mock_resolver(handler, **config_overrides) -> MediaResolver:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MediaResolver(make_config(**config_overrides), client=client)


# =========================================================================
# Source detection
# =========================================================================

class TestParseImageSource:

    def test_https_url(self):
        ref = parse_image_source("https://example.com/a.png")
        assert ref == MediaReference.from_url("https://example.com/a.png")

    def test_http_url(self):
        assert parse_image_source("http://example.com/a.png").source_type == MediaSourceType.URL

    def test_absolute_path(self, tmp_path):
        target = tmp_path / "a.png"
        ref = parse_image_source(str(target))
        assert ref.source_type == MediaSourceType.PATH
        assert ref.path == str(target)

    def test_relative_path_uses_base_dir(self, tmp_path):
        ref = parse_image_source("imgs/a.png", base_dir=str(tmp_path))
        assert ref.path == str(tmp_path / "imgs" / "a.png")

    def test_relative_path_defaults_to_cwd(self):
        ref = parse_image_source("a.png")
        assert ref.path == str(Path.cwd() / "a.png")

    def test_file_url(self):
        ref = parse_image_source("file:///tmp/my%20pic.png")
        assert ref.source_type == MediaSourceType.PATH
        assert ref.path == str(Path("/tmp/my pic.png"))

    def test_data_url(self):
        src = "data:image/jpeg;base64," + base64.b64encode(JPEG).decode()
        ref = parse_image_source(src)
        assert ref.source_type == MediaSourceType.BYTES
        assert ref.data == JPEG
        assert ref.file_name == "image.jpg"

    @pytest.mark.parametrize("src", ["", "   "])
    def test_empty_source(self, src):
        with pytest.raises(LarkifyMediaParseError):
            parse_image_source(src)


# =========================================================================
# Validation helpers
# =========================================================================

class TestDataUri:

    def test_base64(self):
        mime, data = parse_data_uri("data:image/png;base64," + base64.b64encode(PNG).decode())
        assert mime == "image/png"
        assert data == PNG

    def test_parameters_before_base64(self):
        mime, data = parse_data_uri("data:image/svg+xml;charset=utf-8;base64,PHN2Zy8+")
        assert mime == "image/svg+xml"
        assert data == b"<svg/>"

    def test_percent_encoded(self):
        mime, data = parse_data_uri("data:image/svg+xml,%3Csvg%2F%3E")
        assert data == b"<svg/>"

    def test_missing_mime_defaults(self):
        mime, _ = parse_data_uri("data:;base64,AAEC")
        assert mime == "application/octet-stream"

    def test_not_a_data_url(self):
        with pytest.raises(LarkifyMediaParseError) as exc_info:
            parse_data_uri("https://example.com")
        assert exc_info.value.context["reason"] == "regex_no_match"

    def test_bad_base64(self):
        with pytest.raises(LarkifyMediaParseError) as exc_info:
            parse_data_uri("data:image/png;base64,***")
        assert exc_info.value.context["reason"] == "base64_decode_error"
        assert exc_info.value.code == ErrorCode.MEDIA_PARSE_ERROR

    def test_empty_payload(self):
        with pytest.raises(LarkifyMediaParseError) as exc_info:
            parse_data_uri("data:image/png;base64,")
        assert exc_info.value.context["reason"] == "empty"


class TestMimeHelpers:

    @pytest.mark.parametrize("data,mime", [
        (PNG, "image/png"),
        (JPEG, "image/jpeg"),
        (b"GIF89a....", "image/gif"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
        (b"<svg xmlns=...>", "image/svg+xml"),
        (b"RIFF\x00\x00\x00\x00WAVE", None),
        (b"plain text", None),
    ])
    def test_sniff(self, data, mime):
        assert sniff_mime(data) == mime

    def test_extension_for_mime(self):
        assert extension_for_mime("image/jpeg") == "jpg"
        assert extension_for_mime("IMAGE/PNG; charset=binary") == "png"
        assert extension_for_mime(None) == "png"
        assert extension_for_mime("application/x-unknown-thing") == "png"

    def test_ensure_extension(self):
        assert ensure_extension("photo.jpeg", PNG) == "photo.jpeg"
        assert ensure_extension("photo", PNG) == "photo.png"
        assert ensure_extension("photo", b"??", "image/gif") == "photo.gif"

    def test_check_size(self):
        check_size(10, 10, "src")
        with pytest.raises(LarkifyMediaSizeError) as exc_info:
            check_size(11, 10, "src")
        assert exc_info.value.context["size_bytes"] == 11
        assert exc_info.value.context["max_bytes"] == 10

    def test_truncate_src(self):
        assert truncate_src("short") == "short"
        assert truncate_src("x" * 300) == "x" * 200 + "..."


# =========================================================================
# MediaResolver
# =========================================================================

class TestResolveBytes:

    async def test_bytes_pass_through(self):
        resolver = MediaResolver(make_config())
        resolved = await resolver.resolve(MediaReference.from_bytes(PNG, "mermaid_1.png"))
        assert resolved.data == PNG
        assert resolved.file_name == "mermaid_1.png"
        await resolver.close()

    async def test_bytes_size_checked(self):
        resolver = MediaResolver(make_config(image_max_size_bytes=4))
        with pytest.raises(LarkifyMediaSizeError):
            await resolver.resolve(MediaReference.from_bytes(PNG, "a.png"))
        await resolver.close()


class TestResolvePath:

    async def test_reads_file(self, tmp_path):
        image = tmp_path / "chart"
        image.write_bytes(PNG)
        resolver = MediaResolver(make_config())
        resolved = await resolver.resolve(MediaReference.from_path(str(image)))
        assert resolved.data == PNG
        assert resolved.file_name == "chart.png"
        await resolver.close()

    async def test_missing_file(self, tmp_path):
        resolver = MediaResolver(make_config())
        with pytest.raises(LarkifyMediaNotFoundError) as exc_info:
            await resolver.resolve(MediaReference.from_path(str(tmp_path / "nope.png")))
        assert exc_info.value.code == ErrorCode.MEDIA_NOT_FOUND
        await resolver.close()

    async def test_directory_is_not_a_file(self, tmp_path):
        resolver = MediaResolver(make_config())
        with pytest.raises(LarkifyMediaNotFoundError):
            await resolver.resolve(MediaReference.from_path(str(tmp_path)))
        await resolver.close()

    async def test_oversized_file(self, tmp_path):
        image = tmp_path / "big.png"
        image.write_bytes(PNG)
        resolver = MediaResolver(make_config(image_max_size_bytes=8))
        with pytest.raises(LarkifyMediaSizeError):
            await resolver.resolve(MediaReference.from_path(str(image)))
        await resolver.close()


class TestResolveUrl:

    async def test_download(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url == "https://cdn.example.com/img/logo"
            return httpx.Response(200, content=PNG)

        resolver = mock_resolver(handler)
        resolved = await resolver.resolve(MediaReference.from_url("https://cdn.example.com/img/logo"))
        assert resolved.data == PNG
        assert resolved.file_name == "logo.png"

    async def test_content_type_used_when_bytes_unknown(self):
        def handler(request):
            return httpx.Response(200, content=b"????", headers={"content-type": "image/gif"})

        resolver = mock_resolver(handler)
        resolved = await resolver.resolve(MediaReference.from_url("https://x.test/pic"))
        assert resolved.file_name == "pic.gif"

    async def test_url_without_path_gets_default_name(self):
        resolver = mock_resolver(lambda request: httpx.Response(200, content=PNG))
        resolved = await resolver.resolve(MediaReference.from_url("https://x.test"))
        assert resolved.file_name == "image.png"

    async def test_http_error_status(self):
        resolver = mock_resolver(lambda request: httpx.Response(404, content=b"missing"))
        with pytest.raises(LarkifyMediaError) as exc_info:
            await resolver.resolve(MediaReference.from_url("https://x.test/a.png"))
        assert exc_info.value.context["status_code"] == 404

    async def test_declared_length_over_limit(self):
        resolver = mock_resolver(
            lambda request: httpx.Response(200, content=PNG),
            image_max_size_bytes=8,
        )
        with pytest.raises(LarkifyMediaSizeError):
            await resolver.resolve(MediaReference.from_url("https://x.test/a.png"))

    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        resolver = mock_resolver(handler)
        with pytest.raises(LarkifyMediaError) as exc_info:
            await resolver.resolve(MediaReference.from_url("https://x.test/a.png"))
        assert exc_info.value.context["reason"] == "ConnectError"
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    async def test_empty_body(self):
        resolver = mock_resolver(lambda request: httpx.Response(200, content=b""))
        with pytest.raises(LarkifyMediaError):
            await resolver.resolve(MediaReference.from_url("https://x.test/a.png"))

    async def test_download_disabled(self):
        def handler(request):
            raise AssertionError("no request expected")

        resolver = mock_resolver(handler)
        with pytest.raises(LarkifyMediaError) as exc_info:
            await resolver.resolve(
                MediaReference.from_url("https://x.test/a.png"), download_enabled=False,
            )
        assert exc_info.value.context["reason"] == "download_disabled"


class TestResolverLifecycle:

    async def test_owned_client_closed(self):
        resolver = MediaResolver(make_config())
        await resolver.close()
        assert resolver._client.is_closed

    async def test_borrowed_client_left_open(self):
        client = httpx.AsyncClient()
        async with MediaResolver(make_config(), client=client):
            pass
        assert not client.is_closed
        await client.aclose()
