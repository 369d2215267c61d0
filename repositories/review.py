from typing import List, Optional, Tuple
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.errors import ConflictError
from models.review import Review
from repositories.base import BaseRepository

logger = logging.getLogger(__name__)

ALREADY_REVIEWED_MESSAGE = "Booking already reviewed"


class ReviewRepository(BaseRepository[Review]):
    model = Review

    async def get_by_booking(self, booking_id: int) -> Optional[Review]:
        result = await self.db_session.execute(select(Review).where(Review.booking_id == booking_id))
        return result.scalar_one_or_none()

    async def create(self, **fields) -> Review:
        review = Review(**fields)
        self.db_session.add(review)
        try:
            await self.db_session.flush()
        except IntegrityError as e:
            # Unique booking_id lost a race with a concurrent review
            await self.db_session.rollback()
            logger.info(f"Duplicate review rejected for booking {fields.get('booking_id')}")
            raise ConflictError(ALREADY_REVIEWED_MESSAGE) from e
        except SQLAlchemyError as e:
            logger.exception(f"Database error in create review: {str(e)}")
            raise

        await self.db_session.refresh(review, attribute_names=["reviewer"])
        return review

    async def aggregate_for(self, reviewee_user_id: int) -> Tuple[Optional[float], int]:
        """Return (average rating, review count) for a reviewee."""
        result = await self.db_session.execute(
            select(func.avg(Review.rating), func.count(Review.id)).where(
                Review.reviewee_user_id == reviewee_user_id
            )
        )
        average, count = result.one()
        return (float(average) if average is not None else None), count

    async def list_for_reviewee(self, reviewee_user_id: int, offset: int, limit: int) -> Tuple[List[Review], int]:
        total = await self.db_session.scalar(
            select(func.count(Review.id)).where(Review.reviewee_user_id == reviewee_user_id)
        )
        result = await self.db_session.execute(
            select(Review)
            .where(Review.reviewee_user_id == reviewee_user_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0
