"""
聊天消息数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Index
from datetime import datetime, timezone

from .base import Base


class MessageModel(Base):
    """
    聊天消息表：一条记录对应一条消息，只追加不删除

    所有业务规则都在 domain.message.entity.Message 中
    """
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_pair_read", "sender_id", "recipient_id", "read"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    sender_id = Column(String(64), nullable=False, comment="发送方身份")
    recipient_id = Column(String(64), nullable=False, comment="接收方身份")
    text = Column(Text, nullable=False, comment="消息正文")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
        comment="创建时间（由存储分配）"
    )
    read = Column(Boolean, default=False, nullable=False, comment="是否已读")

    def __repr__(self):
        return f"<MessageModel(id={self.id}, from='{self.sender_id}', to='{self.recipient_id}', read={self.read})>"
