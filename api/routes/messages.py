"""
消息历史路由 - 会话分页与未读数
"""
from fastapi import APIRouter, Depends, Query

from api.dependencies import get_message_store
from application.dto import MessageDTO, UnreadCountDTO
from application.services.message_store import MessageStore
from core.config import settings
from core.response import (
    Response as ApiResponse,
    PaginatedData,
    paginated_response,
    success_response,
)

router = APIRouter(
    prefix="/messages",
    tags=["Messages"],
)


@router.get(
    "/{user_a}/{user_b}",
    summary="双方会话历史（按时间正序）",
    response_model=ApiResponse[PaginatedData[MessageDTO]],
)
async def get_conversation(
    user_a: str,
    user_b: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    store: MessageStore = Depends(get_message_store),
):
    items, total = await store.conversation(user_a, user_b, skip=skip, limit=limit)
    return paginated_response(items=items, total=total, skip=skip, limit=limit)


@router.get(
    "/{sender}/{recipient}/unread",
    summary="sender → recipient 的未读消息数",
    response_model=ApiResponse[UnreadCountDTO],
)
async def get_unread_count(
    sender: str,
    recipient: str,
    store: MessageStore = Depends(get_message_store),
):
    return success_response(data=await store.unread_count(sender, recipient))
