from dataclasses import dataclass
from typing import List
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import AppError, ForbiddenError, NotFoundError, ValidationError
from core.security import TokenPayload
from models.booking import Booking
from models.message import MAX_MESSAGE_LENGTH
from models.user import Role
from repositories.booking import BookingRepository, BookingScope, NannyScope, ParentScope, PartyScope
from repositories.message import MessageRepository
from schemas.common import Pagination, UserSummary
from schemas.message import ConversationRead, MessageList, MessageRead
from services.helpers import page_window

logger = logging.getLogger(__name__)

MAX_MESSAGES_PAGE_SIZE = 100


def is_party(booking: Booking, user_id: int) -> bool:
    return user_id in booking.party_ids


def other_party(booking: Booking, user_id: int) -> int:
    if user_id == booking.parent_user_id:
        return booking.nanny_user_id
    return booking.parent_user_id


def conversation_scope(actor: TokenPayload) -> BookingScope:
    if actor.role == Role.PARENT:
        return ParentScope(actor.user_id)
    if actor.role == Role.NANNY:
        return NannyScope(actor.user_id)
    # Admins only see conversations they take part in
    return PartyScope(actor.user_id)


def normalize_text(text) -> str:
    """Trim and length-check a message body."""
    if not isinstance(text, str):
        raise ValidationError("Message text is required")
    text = text.strip()
    if not text:
        raise ValidationError("Message text is required")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message text must be at most {MAX_MESSAGE_LENGTH} characters")
    return text


@dataclass(frozen=True)
class Delivery:
    """A stored message and the party who should be notified about it."""
    message: MessageRead
    recipient_user_id: int


class MessagingService:
    """Per-booking conversations between the parent and the nanny."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.booking_repo = BookingRepository(db)
        self.message_repo = MessageRepository(db)

    async def get_party_booking(self, booking_id: int, user_id: int) -> Booking:
        booking = await self.booking_repo.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        if not is_party(booking, user_id):
            raise ForbiddenError()
        return booking

    async def list_conversations(self, actor: TokenPayload) -> List[ConversationRead]:
        bookings = await self.booking_repo.list_for_conversations(conversation_scope(actor))
        booking_ids = [booking.id for booking in bookings]
        latest = await self.message_repo.latest_by_booking(booking_ids)
        unread = await self.message_repo.unread_counts(booking_ids, actor.user_id)

        conversations = []
        for booking in bookings:
            last_message = latest.get(booking.id)
            conversations.append(
                ConversationRead(
                    booking_id=booking.id,
                    status=booking.status,
                    start_time=booking.start_time,
                    end_time=booking.end_time,
                    parent=UserSummary.model_validate(booking.parent),
                    nanny=UserSummary.model_validate(booking.nanny),
                    last_message=MessageRead.model_validate(last_message) if last_message else None,
                    unread_count=unread.get(booking.id, 0),
                )
            )
        return conversations

    async def list_messages(self, booking_id: int, user_id: int, page: int = 1, limit: int = 50) -> MessageList:
        """
        Read a page of a booking's conversation, oldest first.

        Reading marks the other party's unread messages in the booking as read.
        """
        page, limit, offset = page_window(page, limit, MAX_MESSAGES_PAGE_SIZE)
        try:
            await self.get_party_booking(booking_id, user_id)
            messages = await self.message_repo.list_for_booking(booking_id, offset, limit)
            total = await self.message_repo.count_for_booking(booking_id)
            page_items = [MessageRead.model_validate(message) for message in messages]

            marked = await self.message_repo.mark_read(booking_id, user_id)
            await self.db.commit()
        except AppError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error listing messages for booking {booking_id}: {e}")
            raise

        if marked:
            logger.debug(f"Marked {marked} messages read in booking {booking_id} for user {user_id}")
        return MessageList(messages=page_items, pagination=Pagination.create(total, page, limit, with_pages=False))

    async def send_message(self, booking_id: int, user_id: int, text: str) -> Delivery:
        try:
            booking = await self.get_party_booking(booking_id, user_id)
            body = normalize_text(text)
            message = await self.message_repo.create(booking.id, user_id, body)
            await self.db.commit()
        except AppError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error sending message in booking {booking_id}: {e}")
            raise

        logger.info(f"Message {message.id} sent in booking {booking_id} by user {user_id}")
        return Delivery(
            message=MessageRead.model_validate(message),
            recipient_user_id=other_party(booking, user_id),
        )
