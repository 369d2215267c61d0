from typing import List
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError
from models.nanny import NannyProfile
from repositories.nanny import (
    CityContains, HasLanguage, HasSkill, IsAvailable, MinExperience, MinRating, NannyRepository, RateRange,
    SortKey,
)
from repositories.review import ReviewRepository
from schemas.common import Pagination
from schemas.nanny import (
    MAX_SEARCH_PAGE_SIZE, NannyProfileDetail, NannyProfileRead, NannyProfileUpdate,
    NannySearchParams, NannySearchResponse, NannySearchResult,
)
from schemas.review import ReviewRead
from services.geo import haversine_km
from services.helpers import page_window, round_to_tenth

logger = logging.getLogger(__name__)

PROFILE_RECENT_REVIEWS = 10


def build_criteria(params: NannySearchParams) -> List[object]:
    criteria = []
    if params.city:
        criteria.append(CityContains(params.city))
    if params.min_rate is not None or params.max_rate is not None:
        criteria.append(RateRange(params.min_rate, params.max_rate))
    if params.min_years is not None:
        criteria.append(MinExperience(params.min_years))
    if params.language:
        criteria.append(HasLanguage(params.language))
    if params.skill:
        criteria.append(HasSkill(params.skill))
    if params.min_rating is not None:
        criteria.append(MinRating(params.min_rating))
    if params.is_available is not None:
        criteria.append(IsAvailable(params.is_available))
    return criteria


def with_distance(profile: NannyProfile, params: NannySearchParams) -> NannySearchResult:
    result = NannySearchResult.model_validate(profile)
    if params.lat is None or params.lng is None:
        return result
    if profile.latitude is not None and profile.longitude is not None:
        distance = haversine_km(params.lat, params.lng, profile.latitude, profile.longitude)
        result.distance_km = round_to_tenth(distance)
    return result


class SearchService:
    """Nanny discovery and nanny-owned profile maintenance."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.nanny_repo = NannyRepository(db)
        self.review_repo = ReviewRepository(db)

    async def search(self, params: NannySearchParams) -> NannySearchResponse:
        """
        Find nannies matching every given filter.

        When a reference point is given, each result carries its distance. A
        radius is applied to the fetched page only, so a page can come back
        shorter than ``limit`` and ``total`` counts matches before the radius.
        """
        page, limit, offset = page_window(params.page, params.limit, MAX_SEARCH_PAGE_SIZE)
        sort = SortKey.parse(params.sort_by)
        profiles, total = await self.nanny_repo.search(build_criteria(params), sort, offset, limit)

        results = [with_distance(profile, params) for profile in profiles]
        has_origin = params.lat is not None and params.lng is not None
        if has_origin and params.radius_km is not None:
            results = [
                result for result in results
                if result.distance_km is not None and result.distance_km <= params.radius_km
            ]

        logger.debug(f"Nanny search matched {total}, returning {len(results)} on page {page}")
        return NannySearchResponse(nannies=results, pagination=Pagination.create(total, page, limit))

    async def get_profile(self, profile_id: int) -> NannyProfileDetail:
        profile = await self.nanny_repo.get(profile_id)
        if not profile:
            raise NotFoundError("Nanny not found")
        reviews, _ = await self.review_repo.list_for_reviewee(profile.user_id, 0, PROFILE_RECENT_REVIEWS)
        return NannyProfileDetail(
            profile=NannyProfileRead.model_validate(profile),
            reviews=[ReviewRead.model_validate(review) for review in reviews],
        )

    async def get_my_profile(self, user_id: int) -> NannyProfileRead:
        profile = await self.nanny_repo.get_by_user_id(user_id)
        if not profile:
            raise NotFoundError("Nanny profile not found")
        return NannyProfileRead.model_validate(profile)

    async def update_my_profile(self, user_id: int, data: NannyProfileUpdate) -> NannyProfileRead:
        changes = data.model_dump(exclude_unset=True)
        languages = changes.pop("languages", None)
        skills = changes.pop("skills", None)
        availability = changes.pop("availability", None)

        try:
            profile = await self.nanny_repo.get_by_user_id(user_id)
            if not profile:
                raise NotFoundError("Nanny profile not found")

            if languages is not None:
                self.nanny_repo.replace_languages(profile, languages)
            if skills is not None:
                self.nanny_repo.replace_skills(profile, skills)
            if availability is not None:
                self.nanny_repo.upsert_availability(profile, availability)
            # Columns are NOT NULL; an explicit null leaves them unchanged
            for column in ("hourly_rate_nis", "years_experience", "is_available"):
                if changes.get(column, 0) is None:
                    changes.pop(column)

            await self.nanny_repo.update_fields(profile, changes)
            await self.db.commit()
        except NotFoundError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error updating nanny profile for user {user_id}: {e}")
            raise

        logger.info(f"Nanny profile {profile.id} updated by user {user_id}: {sorted(data.model_fields_set)}")
        return NannyProfileRead.model_validate(profile)
