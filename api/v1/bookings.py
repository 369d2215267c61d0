from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import CurrentUser, get_current_user, get_db, require_role
from models.booking import BookingStatus
from models.user import Role
from schemas.booking import BookingCreate, BookingList, BookingRead, BookingStatusUpdate
from schemas.responses import StandardErrorResponse
from services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=BookingRead,
    status_code=status.HTTP_201_CREATED,
    summary="Request a booking",
    responses={409: {"model": StandardErrorResponse}},
    description="Request a nanny for a time interval. The slot must not overlap the nanny's active bookings.",
)
async def create_booking(
    payload: BookingCreate,
    current_user: CurrentUser = Depends(require_role(Role.PARENT, Role.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a booking request.

    - **nanny_user_id**: User id of the nanny
    - **start_time** / **end_time**: ISO-8601 instants, end after start
    - **children_count**: 1 to 10
    """
    logger.info(f"Booking request from user {current_user.user_id} for nanny {payload.nanny_user_id}")
    return await BookingService(db).create_booking(current_user.user_id, payload)


@router.get(
    "",
    response_model=BookingList,
    summary="List bookings",
    description="Parents see their own requests, nannies their own jobs and admins everything.",
)
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await BookingService(db).list_bookings(current_user, status_filter, page, limit)


@router.get(
    "/{booking_id}",
    response_model=BookingRead,
    summary="Get a booking",
)
async def get_booking(
    booking_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await BookingService(db).get_booking(current_user, booking_id)


@router.patch(
    "/{booking_id}/status",
    response_model=BookingRead,
    summary="Change booking status",
    responses={403: {"model": StandardErrorResponse}, 409: {"model": StandardErrorResponse}},
    description="Accept, decline, cancel or complete a booking.",
)
async def update_booking_status(
    booking_id: int,
    payload: BookingStatusUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Move a booking along its lifecycle.

    - **ACCEPTED**, **DECLINED**, **COMPLETED**: the booking's nanny only
    - **CANCELLED**: either party
    """
    return await BookingService(db).update_status(current_user, booking_id, payload.status)
