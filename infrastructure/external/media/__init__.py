"""External media host (video hosting) integration."""
from typing import Optional

from core.config import settings
from .client import MediaHostClient


def build_media_host_client() -> Optional[MediaHostClient]:
    """Create the client from settings; None when no media host is configured."""
    cfg = settings.media
    if not cfg.base_url:
        return None
    return MediaHostClient(
        base_url=cfg.base_url,
        api_key=cfg.api_key,
        upload_path=cfg.upload_path,
        timeout=cfg.timeout,
        max_retries=cfg.max_retries,
        retry_delay=cfg.retry_delay,
    )


__all__ = ["MediaHostClient", "build_media_host_client"]
