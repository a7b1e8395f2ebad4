"""
消息仓储接口 - 定义数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import List
from .entity import Message


class MessageRepository(ABC):
    """消息仓储抽象接口 - 只追加，不删除"""

    @abstractmethod
    async def add(self, message: Message) -> Message:
        """持久化新消息，分配 id 与时间戳"""
        pass

    @abstractmethod
    async def mark_read(self, sender_id: str, recipient_id: str) -> int:
        """把 (sender, recipient) 之间所有未读消息置为已读，返回受影响行数"""
        pass

    @abstractmethod
    async def list_conversation(self, user_a: str, user_b: str,
                                skip: int = 0, limit: int = 50) -> List[Message]:
        """获取双方会话（双向），按时间正序"""
        pass

    @abstractmethod
    async def count_conversation(self, user_a: str, user_b: str) -> int:
        """统计双方会话消息数"""
        pass

    @abstractmethod
    async def count_unread(self, sender_id: str, recipient_id: str) -> int:
        """统计 sender → recipient 的未读消息数"""
        pass
