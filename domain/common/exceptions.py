"""领域层业务异常定义，供领域、应用与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
`error_type` 字段会原样返回给客户端（HTTP 与 WebSocket 错误事件）。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
        error_type: str = "DomainValidationError",
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type=error_type,
            details=details,
            field=field,
        )


class MessageValidationException(DomainValidationException):
    """消息字段缺失/格式错误、发送方与接收方相同、正文为空"""

    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None):
        super().__init__(message, field=field, details=details, error_type="ValidationError")


class MessageStorageException(BusinessException):
    """持久化层不可达、写入失败或超时"""

    def __init__(self, operation: str, reason: Optional[str] = None):
        details = {"operation": operation}
        if reason:
            details["reason"] = reason
        super().__init__(
            code=BusinessCode.DATABASE_ERROR,
            message=f"Message storage unavailable during {operation}",
            error_type="StorageError",
            details=details,
        )


class SessionNotJoinedException(BusinessException):
    def __init__(self, event_type: str):
        super().__init__(
            code=BusinessCode.SESSION_NOT_JOINED,
            message=f"Event '{event_type}' requires a prior join",
            error_type="NotJoined",
            details={"event": event_type},
        )


class UnknownEventException(BusinessException):
    def __init__(self, event_type: str):
        super().__init__(
            code=BusinessCode.UNKNOWN_EVENT,
            message=f"Unknown event type '{event_type}'",
            error_type="UnknownEvent",
            details={"event": event_type},
        )


class ProfileNotFoundException(BusinessException):
    def __init__(self, user_id: Optional[str] = None):
        details = {"user_id": user_id} if user_id else None
        super().__init__(
            code=BusinessCode.PROFILE_NOT_FOUND,
            message="Profile not found",
            error_type="ProfileNotFound",
            details=details,
        )


class MediaRejectedException(DomainValidationException):
    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message, field="file", details=details, error_type="MediaRejected")


class MediaUploadException(BusinessException):
    def __init__(self, reason: str, status_code: Optional[int] = None):
        details = {"reason": reason}
        if status_code is not None:
            details["upstream_status"] = status_code
        super().__init__(
            code=BusinessCode.MEDIA_UPLOAD_FAILED,
            message="Media host rejected or failed the upload",
            error_type="MediaUploadFailed",
            details=details,
        )


class ServiceUnavailableException(BusinessException):
    def __init__(self, service: str):
        super().__init__(
            code=BusinessCode.SERVICE_UNAVAILABLE,
            message=f"{service} is not configured",
            error_type="ServiceUnavailable",
            details={"service": service},
        )
