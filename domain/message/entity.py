"""
聊天消息领域实体 - 包含核心业务规则
"""
from datetime import datetime
from typing import Optional
from dataclasses import dataclass

from domain.common.exceptions import MessageValidationException


MAX_IDENTITY_LENGTH = 64
MAX_TEXT_LENGTH = 4000


def validate_identity(value: Optional[str], field: str) -> str:
    """业务规则：身份标识为非空字符串，且长度受限"""
    if not isinstance(value, str) or not value.strip():
        raise MessageValidationException(f"'{field}' must be a non-empty identity", field=field)
    if value != value.strip():
        # " alice" 与 "alice" 不能成为两个身份
        raise MessageValidationException(f"'{field}' must not have surrounding whitespace", field=field)
    if len(value) > MAX_IDENTITY_LENGTH:
        raise MessageValidationException(
            f"'{field}' exceeds {MAX_IDENTITY_LENGTH} characters",
            field=field,
            details={"max_length": MAX_IDENTITY_LENGTH},
        )
    return value


@dataclass
class Message:
    """聊天消息实体 - 领域核心

    id 与 created_at 由消息存储在持久化时分配，调用方不可指定。
    """

    sender_id: str
    recipient_id: str
    text: str
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    read: bool = False

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        validate_identity(self.sender_id, "from")
        validate_identity(self.recipient_id, "to")
        if self.sender_id == self.recipient_id:
            raise MessageValidationException("Sender and recipient must differ", field="to")
        if not isinstance(self.text, str) or not self.text.strip():
            raise MessageValidationException("Message text must not be empty", field="text")
        if len(self.text) > MAX_TEXT_LENGTH:
            raise MessageValidationException(
                f"Message text exceeds {MAX_TEXT_LENGTH} characters",
                field="text",
                details={"max_length": MAX_TEXT_LENGTH},
            )
