from dataclasses import dataclass
from datetime import datetime
from functools import singledispatch
from typing import List, Optional, Tuple, Union
import logging

from sqlalchemy import select, update, func, true
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.errors import ConflictError
from models.booking import Booking, BookingStatus, ACTIVE_STATUSES, NO_OVERLAP_CONSTRAINT
from repositories.base import BaseRepository

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "Nanny is not available for this time slot"


# Visibility scopes for booking listings

@dataclass(frozen=True)
class ParentScope:
    user_id: int


@dataclass(frozen=True)
class NannyScope:
    user_id: int


@dataclass(frozen=True)
class PartyScope:
    """Bookings where the user is on either side."""
    user_id: int


@dataclass(frozen=True)
class EveryoneScope:
    pass


BookingScope = Union[ParentScope, NannyScope, PartyScope, EveryoneScope]


@singledispatch
def scope_clause(scope):
    raise TypeError(f"Unsupported booking scope: {scope!r}")


@scope_clause.register
def _(scope: ParentScope):
    return Booking.parent_user_id == scope.user_id


@scope_clause.register
def _(scope: NannyScope):
    return Booking.nanny_user_id == scope.user_id


@scope_clause.register
def _(scope: PartyScope):
    return (Booking.parent_user_id == scope.user_id) | (Booking.nanny_user_id == scope.user_id)


@scope_clause.register
def _(scope: EveryoneScope):
    return true()


def _is_overlap_violation(error: IntegrityError) -> bool:
    return NO_OVERLAP_CONSTRAINT in str(error.orig)


class BookingRepository(BaseRepository[Booking]):
    model = Booking

    async def find_conflict(
        self,
        nanny_user_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> Optional[int]:
        """Return the id of an active booking overlapping [start_time, end_time), if any."""
        query = (
            select(Booking.id)
            .where(
                Booking.nanny_user_id == nanny_user_id,
                Booking.status.in_(ACTIVE_STATUSES),
                Booking.start_time < end_time,
                Booking.end_time > start_time,
            )
            .limit(1)
        )
        if exclude_booking_id is not None:
            query = query.where(Booking.id != exclude_booking_id)

        result = await self.db_session.execute(query)
        return result.scalar_one_or_none()

    async def create(self, **fields) -> Booking:
        booking = Booking(**fields)
        self.db_session.add(booking)
        try:
            await self.db_session.flush()
        except IntegrityError as e:
            await self.db_session.rollback()
            if _is_overlap_violation(e):
                logger.info(
                    f"Overlap guard rejected booking for nanny {fields.get('nanny_user_id')} "
                    f"{fields.get('start_time')} - {fields.get('end_time')}"
                )
                raise ConflictError(SLOT_TAKEN_MESSAGE) from e
            logger.exception(f"Integrity error in create booking: {str(e)}")
            raise
        except SQLAlchemyError as e:
            logger.exception(f"Database error in create booking: {str(e)}")
            raise

        await self.db_session.refresh(booking, attribute_names=["parent", "nanny"])
        return booking

    async def get_by_id(self, booking_id: int, for_update: bool = False) -> Optional[Booking]:
        query = select(Booking).where(Booking.id == booking_id)
        if for_update:
            # Serializes concurrent status updates on the same booking
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db_session.execute(query)
        return result.scalar_one_or_none()

    async def list_bookings(
        self,
        scope: BookingScope,
        status: Optional[BookingStatus] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        """Bookings visible in ``scope``, newest first, plus the total count."""
        conditions = [scope_clause(scope)]
        if status is not None:
            conditions.append(Booking.status == status)

        try:
            total = await self.db_session.scalar(select(func.count(Booking.id)).where(*conditions))
            result = await self.db_session.execute(
                select(Booking)
                .where(*conditions)
                .order_by(Booking.created_at.desc(), Booking.id.desc())
                .offset(offset)
                .limit(limit)
            )
            return list(result.scalars().all()), total or 0
        except SQLAlchemyError as e:
            logger.exception(f"Database error in list bookings: {str(e)}")
            raise

    async def list_for_conversations(self, scope: BookingScope) -> List[Booking]:
        result = await self.db_session.execute(
            select(Booking)
            .where(scope_clause(scope))
            .order_by(Booking.updated_at.desc(), Booking.id.desc())
        )
        return list(result.scalars().all())

    async def set_status(self, booking: Booking, status: BookingStatus) -> Booking:
        booking.status = status
        await self.db_session.flush()
        return booking

    async def set_payment_intent(self, booking_id: int, payment_intent_id: str) -> bool:
        result = await self.db_session.execute(
            update(Booking)
            .where(Booking.id == booking_id)
            .values(payment_intent_id=payment_intent_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def mark_paid_by_intent(self, payment_intent_id: str) -> int:
        """Flag the booking(s) carrying this provider intent id as paid."""
        result = await self.db_session.execute(
            update(Booking)
            .where(Booking.payment_intent_id == payment_intent_id)
            .values(is_paid=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
