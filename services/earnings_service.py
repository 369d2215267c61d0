from typing import Optional, Tuple
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from models.booking import Booking
from repositories.earning import EarningRepository
from repositories.nanny import NannyRepository
from schemas.earning import EarningRead, EarningsResponse, EarningsSummary
from services.helpers import round_half_up

logger = logging.getLogger(__name__)


def split_amount(amount_nis: int, fee_percent: float) -> Tuple[int, int]:
    """Return (platform_fee, net_amount) for a booking total."""
    platform_fee = round_half_up(amount_nis * fee_percent / 100)
    return platform_fee, amount_nis - platform_fee


class EarningsService:
    """Caregiver-side ledger of completed bookings."""

    def __init__(self, db: AsyncSession, fee_percent: Optional[float] = None):
        self.db = db
        self.fee_percent = settings.PLATFORM_FEE_PERCENT if fee_percent is None else fee_percent
        self.earning_repo = EarningRepository(db)
        self.nanny_repo = NannyRepository(db)

    async def record_completion(self, booking: Booking) -> bool:
        """
        Write the ledger entry for a completed booking.

        Runs inside the caller's transaction. The entry is keyed by booking, so
        calling this twice for the same booking writes once and bumps the
        nanny's counters once.

        Returns:
            True if a new entry was written
        """
        platform_fee, net_amount = split_amount(booking.total_amount_nis, self.fee_percent)
        earning_id = await self.earning_repo.insert_if_absent(
            booking_id=booking.id,
            nanny_user_id=booking.nanny_user_id,
            amount_nis=booking.total_amount_nis,
            platform_fee=platform_fee,
            net_amount_nis=net_amount,
        )
        if earning_id is None:
            logger.info(f"Earning for booking {booking.id} already recorded, skipping")
            return False

        await self.nanny_repo.record_completed_job(booking.nanny_user_id, net_amount)
        logger.info(
            f"Recorded earning {earning_id} for booking {booking.id}: "
            f"amount={booking.total_amount_nis} fee={platform_fee} net={net_amount}"
        )
        return True

    async def get_earnings_summary(self, nanny_user_id: int) -> EarningsSummary:
        total_earned, total_pending, total_jobs = await self.earning_repo.summary_for_nanny(nanny_user_id)
        return EarningsSummary(total_earned=total_earned, total_pending=total_pending, total_jobs=total_jobs)

    async def list_earnings(self, nanny_user_id: int) -> EarningsResponse:
        earnings = await self.earning_repo.list_for_nanny(nanny_user_id)
        summary = await self.get_earnings_summary(nanny_user_id)
        return EarningsResponse(
            earnings=[EarningRead.model_validate(earning) for earning in earnings],
            summary=summary,
        )
