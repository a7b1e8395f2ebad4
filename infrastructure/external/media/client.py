"""HTTP client for the external media host.

The host accepts a multipart ``file`` upload and answers with JSON that
carries the public URL (``secure_url`` or ``url``) and optionally an id.
"""
from typing import Optional

import httpx

from application.ports.media import HostedMedia, MediaHostPort
from core.logging_config import get_logger
from domain.common.exceptions import MediaUploadException
from infrastructure.external.api_clients import BaseAPIClient, ExternalServiceError


logger = get_logger(__name__)


class MediaHostClient(BaseAPIClient, MediaHostPort):

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        upload_path: str = "/videos",
        timeout: float = 30.0,
        max_retries: int = 2,
        retry_delay: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            auth_token=api_key,
            transport=transport,
        )
        self.upload_path = upload_path

    async def upload_video(
        self,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> HostedMedia:
        files = {"file": (filename, data, content_type or "application/octet-stream")}
        try:
            response = await self.post(self.upload_path, files=files, data={"resource_type": "video"})
        except ExternalServiceError as exc:
            logger.error("media_upload_failed", filename=filename, status=exc.status_code, error=exc.message)
            raise MediaUploadException(exc.message, status_code=exc.status_code) from exc

        body = response.data if isinstance(response.data, dict) else {}
        url = body.get("secure_url") or body.get("url")
        if not url:
            logger.error("media_upload_no_url", filename=filename, status=response.status_code)
            raise MediaUploadException("media host response did not include a URL", status_code=response.status_code)
        media_id = body.get("public_id") or body.get("id")
        return HostedMedia(
            url=str(url),
            size=int(body.get("bytes") or len(data)),
            content_type=content_type,
            media_id=str(media_id) if media_id is not None else None,
        )
