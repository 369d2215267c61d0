from typing import List, Optional
import logging

from sqlalchemy import select, func, case
from sqlalchemy.exc import SQLAlchemyError

from models.earning import Earning
from repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class EarningRepository(BaseRepository[Earning]):
    model = Earning

    async def insert_if_absent(
        self,
        booking_id: int,
        nanny_user_id: int,
        amount_nis: int,
        platform_fee: int,
        net_amount_nis: int,
    ) -> Optional[int]:
        """Insert the ledger row for a booking unless one exists.

        Returns the new row id, or None when the booking already had an entry.
        """
        statement = (
            self.insert()
            .values(
                booking_id=booking_id,
                nanny_user_id=nanny_user_id,
                amount_nis=amount_nis,
                platform_fee=platform_fee,
                net_amount_nis=net_amount_nis,
                is_paid=False,
            )
            .on_conflict_do_nothing(index_elements=["booking_id"])
            .returning(Earning.id)
        )
        try:
            result = await self.db_session.execute(statement)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.exception(f"Database error in insert earning for booking {booking_id}: {str(e)}")
            raise

    async def list_for_nanny(self, nanny_user_id: int) -> List[Earning]:
        result = await self.db_session.execute(
            select(Earning)
            .where(Earning.nanny_user_id == nanny_user_id)
            .order_by(Earning.created_at.desc(), Earning.id.desc())
        )
        return list(result.scalars().all())

    async def summary_for_nanny(self, nanny_user_id: int):
        """Return (total_earned, total_pending, total_jobs)."""
        result = await self.db_session.execute(
            select(
                func.coalesce(func.sum(Earning.net_amount_nis), 0),
                func.coalesce(
                    func.sum(case((Earning.is_paid.is_(False), Earning.net_amount_nis), else_=0)), 0
                ),
                func.count(Earning.id),
            ).where(Earning.nanny_user_id == nanny_user_id)
        )
        total_earned, total_pending, total_jobs = result.one()
        return int(total_earned), int(total_pending), int(total_jobs)
