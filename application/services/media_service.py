"""
视频上传应用服务：校验后转发给外部媒体服务，返回公开URL
"""
from __future__ import annotations

from typing import Optional, Protocol, Sequence

from application.dto import MediaUploadDTO
from application.ports.media import MediaHostPort
from core.logging_config import get_logger
from domain.common.exceptions import MediaRejectedException, ServiceUnavailableException


logger = get_logger(__name__)

UPLOAD_CHUNK_BYTES = 1024 * 1024


class UploadStream(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


class MediaUploadService:

    def __init__(
        self,
        host: Optional[MediaHostPort],
        *,
        max_bytes: int,
        allowed_types: Optional[Sequence[str]] = None,
    ) -> None:
        self._host = host
        self._max_bytes = max_bytes
        self._allowed_types = {t.lower() for t in allowed_types} if allowed_types else None

    def _too_large(self, size: int) -> MediaRejectedException:
        return MediaRejectedException(
            "Uploaded file is too large",
            details={"max_bytes": self._max_bytes, "size": size},
        )

    async def read_upload(self, stream: UploadStream, *, declared_size: Optional[int] = None) -> bytes:
        """分块读取上传内容，超过上限立即拒绝，不会把超大文件整体读入内存"""
        if declared_size is not None and declared_size > self._max_bytes:
            raise self._too_large(declared_size)
        chunks = []
        total = 0
        chunk_size = min(UPLOAD_CHUNK_BYTES, self._max_bytes + 1)
        while True:
            chunk = await stream.read(chunk_size)
            if not chunk:
                break
            total += len(chunk)
            if total > self._max_bytes:
                raise self._too_large(total)
            chunks.append(chunk)
        return b"".join(chunks)

    def _validate(self, data: bytes, content_type: Optional[str]) -> str:
        ctype = (content_type or "").split(";")[0].strip().lower()
        if self._allowed_types is not None:
            if ctype not in self._allowed_types:
                raise MediaRejectedException(
                    f"Content type '{ctype or 'unknown'}' is not allowed",
                    details={"allowed": sorted(self._allowed_types)},
                )
        elif not ctype.startswith("video/"):
            raise MediaRejectedException(f"Only video uploads are accepted, got '{ctype or 'unknown'}'")
        if not data:
            raise MediaRejectedException("Uploaded file is empty")
        if len(data) > self._max_bytes:
            raise self._too_large(len(data))
        return ctype

    async def upload_video(self, *, data: bytes, filename: str, content_type: Optional[str]) -> MediaUploadDTO:
        ctype = self._validate(data, content_type)
        if self._host is None:
            raise ServiceUnavailableException("media host")
        hosted = await self._host.upload_video(data, filename, ctype)
        logger.info("video_uploaded", filename=filename, size=len(data), url=hosted.url)
        return MediaUploadDTO(url=hosted.url, content_type=hosted.content_type or ctype, size=hosted.size)
