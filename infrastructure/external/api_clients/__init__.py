"""外部 HTTP 服务客户端公共部分"""
from .base import (
    BaseAPIClient,
    ExternalAuthError,
    ExternalServiceError,
    ServiceResponse,
    TransientServiceError,
)

__all__ = [
    "BaseAPIClient",
    "ExternalAuthError",
    "ExternalServiceError",
    "ServiceResponse",
    "TransientServiceError",
]
