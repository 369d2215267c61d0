from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import CurrentUser, get_current_user, get_db, require_role
from models.user import Role
from schemas.earning import EarningsResponse
from schemas.user import DeviceRead, DeviceRegister, UserProfileRead, UserProfileUpdate
from services.earnings_service import EarningsService
from services.user_service import UserService

router = APIRouter()


@router.put(
    "/me",
    response_model=UserProfileRead,
    summary="Update my profile",
)
async def update_me(
    payload: UserProfileUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update the calling user's own profile. Omitted fields are left unchanged.

    - **full_name**: 2 to 100 characters
    - **phone**: optional contact number
    - **avatar_url**: http(s) URL, or an empty string to remove the avatar
    """
    return await UserService(db).update_profile(current_user.user_id, payload)


@router.get(
    "/me/earnings",
    response_model=EarningsResponse,
    summary="Get my earnings",
    description="Ledger entries for the calling nanny, newest first, with totals.",
)
async def get_my_earnings(
    current_user: CurrentUser = Depends(require_role(Role.NANNY)),
    db: AsyncSession = Depends(get_db),
):
    return await EarningsService(db).list_earnings(current_user.user_id)


@router.post(
    "/me/devices",
    response_model=DeviceRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register a push device",
)
async def register_device(
    payload: DeviceRegister,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Register a device token for push notifications.

    - **fcm_token**: Firebase token; registering a known token moves it to the caller
    - **platform**: ios or android
    """
    return await UserService(db).register_device(current_user.user_id, payload.fcm_token, payload.platform)
