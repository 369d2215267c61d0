from typing import List
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import CurrentUser, get_current_user, get_db, get_hub
from schemas.message import ConversationRead, MessageList, MessageRead, MessageSend
from services.messaging_service import MessagingService
from services.realtime import ConnectionHub

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/conversations",
    response_model=List[ConversationRead],
    summary="List conversations",
    description="One entry per booking the caller takes part in, with the last message and unread count.",
)
async def list_conversations(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await MessagingService(db).list_conversations(current_user)


@router.get(
    "/{booking_id}",
    response_model=MessageList,
    summary="Read a booking's messages",
    description="Oldest first. Marks the other party's messages as read.",
)
async def list_messages(
    booking_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await MessagingService(db).list_messages(booking_id, current_user.user_id, page, limit)


@router.post(
    "/{booking_id}",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
async def send_message(
    booking_id: int,
    payload: MessageSend,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    hub: ConnectionHub = Depends(get_hub),
    db: AsyncSession = Depends(get_db),
):
    delivery = await MessagingService(db).send_message(booking_id, current_user.user_id, payload.text)
    # Live subscribers are notified after the response is sent
    background_tasks.add_task(hub.publish_message, delivery)
    return delivery.message
