from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import CurrentUser, get_db, require_role
from models.user import Role
from schemas.review import ReviewCreate, ReviewList, ReviewRead
from services.review_service import ReviewService

router = APIRouter()


@router.post(
    "",
    response_model=ReviewRead,
    status_code=status.HTTP_201_CREATED,
    summary="Review a completed booking",
)
async def create_review(
    payload: ReviewCreate,
    current_user: CurrentUser = Depends(require_role(Role.PARENT)),
    db: AsyncSession = Depends(get_db),
):
    return await ReviewService(db).create_review(current_user.user_id, payload)


@router.get(
    "/nanny/{user_id}",
    response_model=ReviewList,
    summary="List a nanny's reviews",
)
async def list_nanny_reviews(
    user_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    db: AsyncSession = Depends(get_db),
):
    return await ReviewService(db).list_reviews_for_nanny(user_id, page, limit)
