import httpx
import pytest

from application.ports.media import HostedMedia
from application.services.media_service import MediaUploadService
from domain.common.exceptions import (
    MediaRejectedException,
    MediaUploadException,
    ServiceUnavailableException,
)
from infrastructure.external.media import MediaHostClient


def _client(handler, **kwargs) -> MediaHostClient:
    return MediaHostClient(
        "https://media.example.test",
        api_key="k-123",
        retry_delay=0.01,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_upload_posts_multipart_and_returns_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = request.content
        return httpx.Response(200, json={"secure_url": "https://cdn.example.test/v/1.mp4", "public_id": "v1", "bytes": 4})

    client = _client(handler)
    try:
        hosted = await client.upload_video(b"\x00\x01\x02\x03", "clip.mp4", "video/mp4")
    finally:
        await client.close()

    assert hosted.url == "https://cdn.example.test/v/1.mp4"
    assert hosted.media_id == "v1" and hosted.size == 4
    assert seen["path"] == "/videos"
    assert seen["auth"] == "Bearer k-123"
    assert b'name="file"; filename="clip.mp4"' in seen["body"]


@pytest.mark.asyncio
async def test_transient_errors_are_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(503, json={"error": "busy"})
        return httpx.Response(200, json={"url": "https://cdn.example.test/v/2.mp4"})

    client = _client(handler, max_retries=2)
    try:
        hosted = await client.upload_video(b"data", "clip.mp4", "video/mp4")
    finally:
        await client.close()

    assert len(calls) == 2
    assert hosted.url.endswith("2.mp4")


@pytest.mark.asyncio
async def test_rejected_upload_maps_to_media_upload_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "unsupported codec"})

    client = _client(handler)
    try:
        with pytest.raises(MediaUploadException) as exc_info:
            await client.upload_video(b"data", "clip.mp4", "video/mp4")
    finally:
        await client.close()
    assert exc_info.value.details["upstream_status"] == 400


@pytest.mark.asyncio
async def test_response_without_url_is_an_error():
    client = _client(lambda request: httpx.Response(200, json={"ok": True}))
    try:
        with pytest.raises(MediaUploadException):
            await client.upload_video(b"data", "clip.mp4", "video/mp4")
    finally:
        await client.close()


class _RecordingHost:
    def __init__(self):
        self.uploads = []

    async def upload_video(self, data, filename, content_type=None):
        self.uploads.append((filename, content_type, len(data)))
        return HostedMedia(url=f"https://cdn.example.test/{filename}", size=len(data), content_type=content_type)

    async def close(self):
        return None


@pytest.mark.asyncio
async def test_service_validates_before_forwarding():
    host = _RecordingHost()
    service = MediaUploadService(host, max_bytes=8)

    with pytest.raises(MediaRejectedException):
        await service.upload_video(data=b"abc", filename="a.png", content_type="image/png")
    with pytest.raises(MediaRejectedException):
        await service.upload_video(data=b"", filename="a.mp4", content_type="video/mp4")
    with pytest.raises(MediaRejectedException):
        await service.upload_video(data=b"x" * 9, filename="a.mp4", content_type="video/mp4")
    assert host.uploads == []

    result = await service.upload_video(data=b"abc", filename="a.mp4", content_type="video/mp4; codecs=avc1")
    assert result.url == "https://cdn.example.test/a.mp4"
    assert host.uploads == [("a.mp4", "video/mp4", 3)]


@pytest.mark.asyncio
async def test_allow_list_overrides_video_prefix():
    service = MediaUploadService(_RecordingHost(), max_bytes=100, allowed_types=["video/mp4"])
    with pytest.raises(MediaRejectedException):
        await service.upload_video(data=b"abc", filename="a.webm", content_type="video/webm")


@pytest.mark.asyncio
async def test_unconfigured_host_is_unavailable():
    service = MediaUploadService(None, max_bytes=100)
    with pytest.raises(ServiceUnavailableException):
        await service.upload_video(data=b"abc", filename="a.mp4", content_type="video/mp4")


class _ChunkedUpload:
    """Upload stand-in that records how much was actually read."""

    def __init__(self, payload: bytes):
        self._payload = payload
        self.consumed = 0

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._payload) - self.consumed
        chunk = self._payload[self.consumed:self.consumed + size]
        self.consumed += len(chunk)
        return chunk


@pytest.mark.asyncio
async def test_oversized_upload_stops_reading_at_the_limit():
    service = MediaUploadService(_RecordingHost(), max_bytes=8)
    upload = _ChunkedUpload(b"x" * 10_000)

    with pytest.raises(MediaRejectedException):
        await service.read_upload(upload)
    assert upload.consumed <= 9


@pytest.mark.asyncio
async def test_declared_size_is_rejected_without_reading():
    service = MediaUploadService(_RecordingHost(), max_bytes=8)
    upload = _ChunkedUpload(b"x" * 100)

    with pytest.raises(MediaRejectedException):
        await service.read_upload(upload, declared_size=100)
    assert upload.consumed == 0


@pytest.mark.asyncio
async def test_upload_within_limit_is_read_completely():
    service = MediaUploadService(_RecordingHost(), max_bytes=8)
    assert await service.read_upload(_ChunkedUpload(b"12345678")) == b"12345678"
