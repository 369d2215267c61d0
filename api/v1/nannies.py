from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import CurrentUser, get_db, require_role
from models.user import Role
from schemas.nanny import (
    NannyProfileDetail, NannyProfileRead, NannyProfileUpdate, NannySearchParams, NannySearchResponse,
)
from services.search_service import SearchService

router = APIRouter()


@router.get(
    "",
    response_model=NannySearchResponse,
    summary="Search nannies",
    description="Filter available nannies. Distance is returned when lat and lng are given.",
)
async def search_nannies(
    params: Annotated[NannySearchParams, Query()],
    db: AsyncSession = Depends(get_db),
):
    """
    Search available nannies.

    - **city**: case-insensitive substring
    - **min_rate** / **max_rate**: hourly rate bounds in NIS
    - **language**, **skill**: exact membership
    - **lat**, **lng**, **radius_km**: distance filter applied to the returned page
    - **sort_by**: rating, rate_asc, rate_desc, experience, reviews or newest
    """
    return await SearchService(db).search(params)


@router.get(
    "/me",
    response_model=NannyProfileRead,
    summary="Get my nanny profile",
)
async def get_my_profile(
    current_user: CurrentUser = Depends(require_role(Role.NANNY)),
    db: AsyncSession = Depends(get_db),
):
    return await SearchService(db).get_my_profile(current_user.user_id)


@router.put(
    "/me",
    response_model=NannyProfileRead,
    summary="Update my nanny profile",
)
async def update_my_profile(
    payload: NannyProfileUpdate,
    current_user: CurrentUser = Depends(require_role(Role.NANNY)),
    db: AsyncSession = Depends(get_db),
):
    return await SearchService(db).update_my_profile(current_user.user_id, payload)


@router.get(
    "/{profile_id}",
    response_model=NannyProfileDetail,
    summary="Get a nanny profile",
    description="Profile with the ten most recent reviews.",
)
async def get_profile(profile_id: int, db: AsyncSession = Depends(get_db)):
    return await SearchService(db).get_profile(profile_id)
