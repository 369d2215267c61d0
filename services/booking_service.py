from datetime import datetime
from typing import Dict, FrozenSet, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import AppError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from core.security import TokenPayload
from models.booking import Booking, BookingStatus
from models.user import Role
from repositories.booking import (
    BookingRepository, BookingScope, EveryoneScope, NannyScope, ParentScope, SLOT_TAKEN_MESSAGE,
)
from repositories.nanny import NannyRepository
from schemas.booking import BookingCreate, BookingList, BookingRead, SettableStatus
from schemas.common import Pagination
from services.earnings_service import EarningsService
from services.helpers import page_window, round_half_up, to_utc

logger = logging.getLogger(__name__)

MAX_BOOKINGS_PAGE_SIZE = 50

# Terminal statuses have no outgoing moves. IN_PROGRESS may be skipped.
TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.REQUESTED: frozenset(
        {BookingStatus.ACCEPTED, BookingStatus.DECLINED, BookingStatus.CANCELLED}
    ),
    BookingStatus.ACCEPTED: frozenset(
        {BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED, BookingStatus.CANCELLED}
    ),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
}

NANNY_ONLY = frozenset({BookingStatus.ACCEPTED, BookingStatus.DECLINED, BookingStatus.COMPLETED})


def scope_for(actor: TokenPayload) -> BookingScope:
    if actor.role == Role.ADMIN:
        return EveryoneScope()
    if actor.role == Role.NANNY:
        return NannyScope(actor.user_id)
    return ParentScope(actor.user_id)


def can_set_status(booking: Booking, user_id: int, status: BookingStatus) -> bool:
    if status in NANNY_ONLY:
        return user_id == booking.nanny_user_id
    if status == BookingStatus.CANCELLED:
        return user_id in booking.party_ids
    return False


class BookingService:
    """Booking requests, the status lifecycle and role-scoped listings."""

    def __init__(self, db: AsyncSession, earnings: Optional[EarningsService] = None):
        self.db = db
        self.booking_repo = BookingRepository(db)
        self.nanny_repo = NannyRepository(db)
        self.earnings = earnings or EarningsService(db)

    async def has_conflict(
        self,
        nanny_user_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> bool:
        """True if an active booking of the nanny overlaps [start_time, end_time)."""
        conflicting_id = await self.booking_repo.find_conflict(
            nanny_user_id, to_utc(start_time), to_utc(end_time), exclude_booking_id
        )
        return conflicting_id is not None

    async def create_booking(self, parent_user_id: int, data: BookingCreate) -> BookingRead:
        """
        Request a booking with a nanny.

        Args:
            parent_user_id: The requesting parent
            data: Booking request

        Returns:
            The created booking, status REQUESTED

        Raises:
            ValidationError: If the interval is empty or reversed
            NotFoundError: If the nanny has no profile
            ConflictError: If the slot overlaps an active booking
        """
        start_time = to_utc(data.start_time)
        end_time = to_utc(data.end_time)
        if end_time <= start_time:
            raise ValidationError("End time must be after start time")

        try:
            profile = await self.nanny_repo.get_by_user_id(data.nanny_user_id)
            if not profile:
                raise NotFoundError("Nanny not found")

            if await self.has_conflict(data.nanny_user_id, start_time, end_time):
                logger.info(f"Booking conflict for nanny {data.nanny_user_id} {start_time} - {end_time}")
                raise ConflictError(SLOT_TAKEN_MESSAGE)

            hours = (end_time - start_time).total_seconds() / 3600
            booking = await self.booking_repo.create(
                parent_user_id=parent_user_id,
                nanny_user_id=data.nanny_user_id,
                start_time=start_time,
                end_time=end_time,
                hourly_rate_nis=profile.hourly_rate_nis,
                total_amount_nis=round_half_up(hours * profile.hourly_rate_nis),
                status=BookingStatus.REQUESTED,
                notes=data.notes,
                children_count=data.children_count,
                children_ages=data.children_ages,
                address=data.address,
            )
            await self.db.commit()
        except AppError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error creating booking for parent {parent_user_id}: {e}")
            raise

        logger.info(f"Booking {booking.id} requested by parent {parent_user_id} with nanny {booking.nanny_user_id}")
        return BookingRead.model_validate(booking)

    async def update_status(self, actor: TokenPayload, booking_id: int, status: SettableStatus) -> BookingRead:
        """
        Move a booking to a new status.

        Setting the status a booking already has is a no-op, so retries are safe.
        Completing a booking writes its earning entry in the same transaction.
        """
        target = BookingStatus(status.value)
        try:
            booking = await self.booking_repo.get_by_id(booking_id, for_update=True)
            if not booking:
                raise NotFoundError("Booking not found")

            if not can_set_status(booking, actor.user_id, target):
                logger.warning(f"User {actor.user_id} may not set booking {booking_id} to {target.value}")
                raise ForbiddenError(f"Not allowed to set status {target.value}")

            if booking.status == target:
                await self.db.commit()
                return BookingRead.model_validate(booking)

            if target not in TRANSITIONS.get(booking.status, frozenset()):
                raise ConflictError(f"Cannot change booking status from {booking.status.value} to {target.value}")

            previous = booking.status
            await self.booking_repo.set_status(booking, target)
            if target == BookingStatus.COMPLETED:
                await self.earnings.record_completion(booking)
            await self.db.commit()
        except AppError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error updating booking {booking_id} status: {e}")
            raise

        logger.info(f"Booking {booking_id} moved {previous.value} -> {target.value} by user {actor.user_id}")
        return BookingRead.model_validate(booking)

    async def list_bookings(
        self,
        actor: TokenPayload,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> BookingList:
        page, limit, offset = page_window(page, limit, MAX_BOOKINGS_PAGE_SIZE)
        bookings, total = await self.booking_repo.list_bookings(scope_for(actor), status, offset, limit)
        return BookingList(
            bookings=[BookingRead.model_validate(booking) for booking in bookings],
            pagination=Pagination.create(total, page, limit),
        )

    async def get_booking(self, actor: TokenPayload, booking_id: int) -> BookingRead:
        booking = await self.booking_repo.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        if actor.role != Role.ADMIN and actor.user_id not in booking.party_ids:
            raise ForbiddenError()
        return BookingRead.model_validate(booking)
