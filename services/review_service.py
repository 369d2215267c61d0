from typing import Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import AppError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from models.booking import BookingStatus
from repositories.booking import BookingRepository
from repositories.nanny import NannyRepository
from repositories.review import ALREADY_REVIEWED_MESSAGE, ReviewRepository
from schemas.common import Pagination
from schemas.review import ReviewCreate, ReviewList, ReviewRead
from services.helpers import page_window, round_to_tenth

logger = logging.getLogger(__name__)

MAX_REVIEWS_PAGE_SIZE = 50


class ReviewService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.booking_repo = BookingRepository(db)
        self.review_repo = ReviewRepository(db)
        self.nanny_repo = NannyRepository(db)

    async def create_review(self, parent_user_id: int, data: ReviewCreate) -> ReviewRead:
        """
        Review the nanny of a completed booking and refresh the nanny's rating.

        Raises:
            NotFoundError: If the booking does not exist
            ForbiddenError: If the caller is not the booking's parent
            ValidationError: If the booking is not completed
            ConflictError: If the booking was already reviewed
        """
        try:
            booking = await self.booking_repo.get_by_id(data.booking_id)
            if not booking:
                raise NotFoundError("Booking not found")
            if booking.parent_user_id != parent_user_id:
                raise ForbiddenError()
            if booking.status != BookingStatus.COMPLETED:
                raise ValidationError("Can only review completed bookings")
            if await self.review_repo.get_by_booking(booking.id):
                raise ConflictError(ALREADY_REVIEWED_MESSAGE)

            # Concurrent reviews of one nanny queue on the profile row, so each
            # aggregate below sees every committed review
            await self.nanny_repo.get_by_user_id(booking.nanny_user_id, for_update=True)
            review = await self.review_repo.create(
                booking_id=booking.id,
                reviewer_user_id=parent_user_id,
                reviewee_user_id=booking.nanny_user_id,
                rating=data.rating,
                comment=data.comment,
            )
            rating = await self._recompute_rating(booking.nanny_user_id)
            await self.db.commit()
        except AppError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error creating review for booking {data.booking_id}: {e}")
            raise

        logger.info(f"Review {review.id} for nanny {booking.nanny_user_id}; rating now {rating}")
        return ReviewRead.model_validate(review)

    async def _recompute_rating(self, nanny_user_id: int) -> Optional[float]:
        average, count = await self.review_repo.aggregate_for(nanny_user_id)
        if average is None:
            return None
        rating = round_to_tenth(average)
        await self.nanny_repo.set_rating(nanny_user_id, rating, count)
        return rating

    async def list_reviews_for_nanny(self, nanny_user_id: int, page: int = 1, limit: int = 10) -> ReviewList:
        page, limit, offset = page_window(page, limit, MAX_REVIEWS_PAGE_SIZE)
        reviews, total = await self.review_repo.list_for_reviewee(nanny_user_id, offset, limit)
        return ReviewList(
            reviews=[ReviewRead.model_validate(review) for review in reviews],
            pagination=Pagination.create(total, page, limit),
        )
