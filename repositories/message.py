from typing import Dict, List, Sequence
import logging

from sqlalchemy import select, update, func, and_
from sqlalchemy.exc import SQLAlchemyError

from models.message import Message
from repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class MessageRepository(BaseRepository[Message]):
    model = Message

    async def create(self, booking_id: int, from_user_id: int, text: str) -> Message:
        message = Message(booking_id=booking_id, from_user_id=from_user_id, text=text, is_read=False)
        self.db_session.add(message)
        try:
            await self.db_session.flush()
            await self.db_session.refresh(message, attribute_names=["sender"])
            return message
        except SQLAlchemyError as e:
            logger.exception(f"Database error in create message: {str(e)}")
            raise

    async def list_for_booking(self, booking_id: int, offset: int, limit: int) -> List[Message]:
        result = await self.db_session.execute(
            select(Message)
            .where(Message.booking_id == booking_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_for_booking(self, booking_id: int) -> int:
        total = await self.db_session.scalar(
            select(func.count(Message.id)).where(Message.booking_id == booking_id)
        )
        return total or 0

    async def mark_read(self, booking_id: int, reader_user_id: int) -> int:
        """Mark the other party's unread messages in a booking as read."""
        result = await self.db_session.execute(
            update(Message)
            .where(
                Message.booking_id == booking_id,
                Message.from_user_id != reader_user_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def latest_by_booking(self, booking_ids: Sequence[int]) -> Dict[int, Message]:
        if not booking_ids:
            return {}

        ranked = (
            select(
                Message.id.label("message_id"),
                func.row_number()
                .over(
                    partition_by=Message.booking_id,
                    order_by=(Message.created_at.desc(), Message.id.desc()),
                )
                .label("position"),
            )
            .where(Message.booking_id.in_(booking_ids))
            .subquery()
        )
        result = await self.db_session.execute(
            select(Message).join(
                ranked, and_(Message.id == ranked.c.message_id, ranked.c.position == 1)
            )
        )
        return {message.booking_id: message for message in result.scalars().all()}

    async def unread_counts(self, booking_ids: Sequence[int], reader_user_id: int) -> Dict[int, int]:
        if not booking_ids:
            return {}

        result = await self.db_session.execute(
            select(Message.booking_id, func.count(Message.id))
            .where(
                Message.booking_id.in_(booking_ids),
                Message.from_user_id != reader_user_id,
                Message.is_read.is_(False),
            )
            .group_by(Message.booking_id)
        )
        return {booking_id: count for booking_id, count in result.all()}
