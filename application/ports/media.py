"""Application-owned media host port (hexagonal architecture).

Video bytes are never stored by this service; they are forwarded to an
external media host which returns a public URL.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@dataclass
class HostedMedia:
    url: str
    size: int
    content_type: Optional[str] = None
    media_id: Optional[str] = None


@runtime_checkable
class MediaHostPort(Protocol):
    async def upload_video(
        self,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> HostedMedia: ...

    async def close(self) -> None: ...
