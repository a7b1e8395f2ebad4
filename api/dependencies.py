"""
API依赖项 - 应用服务装配

身份由外部身份提供方给出，本服务信任传入的 user_id，不做认证。
"""
from fastapi import Request

from application.services.media_service import MediaUploadService
from application.services.message_store import MessageStore
from application.services.profile_service import ProfileApplicationService
from core.config import settings


def get_message_store(request: Request) -> MessageStore:
    store = getattr(request.app.state, "message_store", None)
    if store is None:
        raise RuntimeError("Message store not initialized. Ensure lifespan sets app.state.message_store.")
    return store


def get_profile_service(request: Request) -> ProfileApplicationService:
    return ProfileApplicationService(uow_factory=request.app.state.uow_factory)


def get_media_service(request: Request) -> MediaUploadService:
    return MediaUploadService(
        getattr(request.app.state, "media_host", None),
        max_bytes=settings.media.max_upload_bytes,
        allowed_types=settings.media.allowed_types,
    )
