"""
消息存储应用服务 - 聊天消息的持久化用例

每次调用使用独立的 Unit of Work（独立会话与事务），
并发 save 之间互不干扰；save 成功返回即表示已提交到持久化存储。
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional, Tuple, TypeVar

from application.dto import MessageDTO, UnreadCountDTO
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import MessageStorageException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.message.entity import Message, validate_identity


logger = get_logger(__name__)

T = TypeVar("T")


class MessageStore:
    """消息存储：save / mark_read 以及会话查询"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        timeout: Optional[float] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._timeout = settings.MESSAGE_STORE_TIMEOUT_S if timeout is None else timeout

    async def _bounded(self, operation: str, coro: Awaitable[T]) -> T:
        """超时视为存储不可用"""
        if not self._timeout or self._timeout <= 0:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error("message_store_timeout", operation=operation, timeout=self._timeout)
            raise MessageStorageException(operation, reason="timeout") from exc

    async def save(self, sender: str, recipient: str, text: str) -> MessageDTO:
        """校验并持久化一条消息；时间戳、已读标记与ID均由存储分配"""
        # 校验在任何持久化尝试之前完成
        message = Message(sender_id=sender, recipient_id=recipient, text=text)

        async def _save() -> Message:
            async with self._uow_factory() as uow:
                stored = await uow.message_repository.add(message)
                await uow.commit()
                return stored

        stored = await self._bounded("save", _save())
        logger.info("message_saved", message_id=stored.id, sender=stored.sender_id, recipient=stored.recipient_id)
        return MessageDTO.from_entity(stored)

    async def mark_read(self, sender: str, recipient: str) -> int:
        """把 sender → recipient 的未读消息全部置为已读，返回受影响条数"""
        validate_identity(sender, "from")
        validate_identity(recipient, "to")

        async def _mark() -> int:
            async with self._uow_factory() as uow:
                count = await uow.message_repository.mark_read(sender, recipient)
                await uow.commit()
                return count

        count = await self._bounded("mark_read", _mark())
        logger.info("messages_marked_read", sender=sender, recipient=recipient, count=count)
        return count

    async def conversation(
        self, user_a: str, user_b: str, *, skip: int = 0, limit: int = 50
    ) -> Tuple[List[MessageDTO], int]:
        """双方会话（双向），按时间正序分页"""
        validate_identity(user_a, "user_a")
        validate_identity(user_b, "user_b")

        async def _query() -> Tuple[List[Message], int]:
            async with self._uow_factory(readonly=True) as uow:
                items = await uow.message_repository.list_conversation(user_a, user_b, skip=skip, limit=limit)
                total = await uow.message_repository.count_conversation(user_a, user_b)
                return items, total

        items, total = await self._bounded("conversation", _query())
        return [MessageDTO.from_entity(m) for m in items], total

    async def unread_count(self, sender: str, recipient: str) -> UnreadCountDTO:
        validate_identity(sender, "from")
        validate_identity(recipient, "to")

        async def _count() -> int:
            async with self._uow_factory(readonly=True) as uow:
                return await uow.message_repository.count_unread(sender, recipient)

        count = await self._bounded("unread_count", _count())
        return UnreadCountDTO(sender=sender, recipient=recipient, unread=count)
