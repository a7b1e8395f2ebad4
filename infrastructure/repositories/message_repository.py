"""
消息仓储实现 - 使用SQLAlchemy实现数据访问
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from domain.message.entity import Message
from domain.message.repository import MessageRepository
from infrastructure.models.message import MessageModel
from infrastructure.repositories.errors import storage_errors


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite 读回的时间不带时区
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class SQLAlchemyMessageRepository(MessageRepository):
    """消息仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: MessageModel) -> Message:
        """将数据库模型转换为领域实体"""
        return Message(
            id=model.id,
            sender_id=model.sender_id,
            recipient_id=model.recipient_id,
            text=model.text,
            created_at=_as_utc(model.created_at),
            read=bool(model.read),
        )

    @staticmethod
    def _pair(user_a: str, user_b: str):
        return or_(
            and_(MessageModel.sender_id == user_a, MessageModel.recipient_id == user_b),
            and_(MessageModel.sender_id == user_b, MessageModel.recipient_id == user_a),
        )

    async def add(self, message: Message) -> Message:
        """持久化新消息：时间戳与已读标记由存储分配"""
        db_message = MessageModel(
            sender_id=message.sender_id,
            recipient_id=message.recipient_id,
            text=message.text,
            created_at=datetime.now(timezone.utc),
            read=False,
        )
        with storage_errors("save"):
            self.session.add(db_message)
            await self.session.flush()  # 获取生成的ID
        return self._to_entity(db_message)

    async def mark_read(self, sender_id: str, recipient_id: str) -> int:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.sender_id == sender_id,
                MessageModel.recipient_id == recipient_id,
                MessageModel.read.is_(False),
            )
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        with storage_errors("mark_read"):
            result = await self.session.execute(stmt)
        return int(result.rowcount or 0)

    async def list_conversation(self, user_a: str, user_b: str,
                                skip: int = 0, limit: int = 50) -> List[Message]:
        query = (
            select(MessageModel)
            .where(self._pair(user_a, user_b))
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
            .offset(skip)
            .limit(limit)
        )
        with storage_errors("list_conversation"):
            result = await self.session.execute(query)
            rows = result.scalars().all()
        return [self._to_entity(row) for row in rows]

    async def count_conversation(self, user_a: str, user_b: str) -> int:
        query = select(func.count()).select_from(MessageModel).where(self._pair(user_a, user_b))
        with storage_errors("count_conversation"):
            result = await self.session.execute(query)
        return int(result.scalar() or 0)

    async def count_unread(self, sender_id: str, recipient_id: str) -> int:
        query = (
            select(func.count())
            .select_from(MessageModel)
            .where(
                MessageModel.sender_id == sender_id,
                MessageModel.recipient_id == recipient_id,
                MessageModel.read.is_(False),
            )
        )
        with storage_errors("count_unread"):
            result = await self.session.execute(query)
        return int(result.scalar() or 0)
