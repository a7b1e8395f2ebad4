"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer
from typing import Any, Optional
from datetime import datetime, timezone

from domain.message.entity import Message
from domain.profile.entity import Profile


class DTOBase(BaseModel):
    """Base DTO: unify datetime serialization to UTC-Z for all subclasses."""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
                s = ts.astimezone(timezone.utc).isoformat()
                return s.replace("+00:00", "Z")
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, tuple):
                return tuple(convert(v) for v in value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


class MessageDTO(DTOBase):
    """聊天消息DTO，对外字段为 {id, from, to, text, timestamp, read}"""

    id: int
    sender: str = Field(..., alias="from")
    recipient: str = Field(..., alias="to")
    text: str
    timestamp: datetime
    read: bool = False

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_entity(cls, message: Message) -> "MessageDTO":
        return cls(
            id=message.id,
            sender=message.sender_id,
            recipient=message.recipient_id,
            text=message.text,
            timestamp=message.created_at,
            read=message.read,
        )

    def to_payload(self) -> dict[str, Any]:
        """推送给 WebSocket 客户端的载荷"""
        return self.model_dump(by_alias=True, mode="json")


class UnreadCountDTO(DTOBase):
    sender: str = Field(..., alias="from")
    recipient: str = Field(..., alias="to")
    unread: int

    model_config = ConfigDict(populate_by_name=True)


class ProfileUpsertDTO(DTOBase):
    """资料创建/更新DTO"""
    display_name: Optional[str] = Field(None, max_length=100)
    location: str = Field(..., min_length=1, max_length=100, description="所在地")
    interests: list[str] = Field(default_factory=list, max_length=50, description="兴趣标签")

    @field_validator("location")
    def _strip_location(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("location must not be blank")
        return v


class ProfileDTO(DTOBase):
    """资料响应DTO"""
    user_id: str
    display_name: Optional[str] = None
    location: str
    interests: list[str] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, profile: Profile) -> "ProfileDTO":
        return cls(
            user_id=profile.user_id,
            display_name=profile.display_name,
            location=profile.location,
            interests=list(profile.interests),
        )


class MatchDTO(DTOBase):
    """匹配结果：候选资料 + 共同兴趣"""
    profile: ProfileDTO
    shared_interests: list[str]


class MediaUploadDTO(DTOBase):
    """视频上传结果：媒体服务返回的公开URL"""
    url: str
    content_type: Optional[str] = None
    size: int
