from dataclasses import dataclass
from enum import Enum
from functools import singledispatch
from typing import Iterable, List, Optional, Sequence, Tuple
import logging

from sqlalchemy import select, update, func, exists, and_
from sqlalchemy.exc import SQLAlchemyError

from models.nanny import NannyProfile, NannyLanguage, NannySkill, Availability
from repositories.base import BaseRepository

logger = logging.getLogger(__name__)


# Search criteria. Every criterion narrows the result set (AND).

@dataclass(frozen=True)
class CityContains:
    city: str


@dataclass(frozen=True)
class RateRange:
    min_rate: Optional[int] = None
    max_rate: Optional[int] = None


@dataclass(frozen=True)
class MinExperience:
    years: int


@dataclass(frozen=True)
class HasLanguage:
    language: str


@dataclass(frozen=True)
class HasSkill:
    skill: str


@dataclass(frozen=True)
class MinRating:
    rating: float


@dataclass(frozen=True)
class IsAvailable:
    available: bool


@singledispatch
def criterion_clause(criterion):
    raise TypeError(f"Unsupported search criterion: {criterion!r}")


@criterion_clause.register
def _(criterion: CityContains):
    return NannyProfile.city.ilike(f"%{criterion.city}%")


@criterion_clause.register
def _(criterion: RateRange):
    clauses = []
    if criterion.min_rate is not None:
        clauses.append(NannyProfile.hourly_rate_nis >= criterion.min_rate)
    if criterion.max_rate is not None:
        clauses.append(NannyProfile.hourly_rate_nis <= criterion.max_rate)
    return and_(*clauses)


@criterion_clause.register
def _(criterion: MinExperience):
    return NannyProfile.years_experience >= criterion.years


@criterion_clause.register
def _(criterion: HasLanguage):
    return exists().where(
        NannyLanguage.nanny_profile_id == NannyProfile.id,
        NannyLanguage.language == criterion.language,
    )


@criterion_clause.register
def _(criterion: HasSkill):
    return exists().where(
        NannySkill.nanny_profile_id == NannyProfile.id,
        NannySkill.skill == criterion.skill,
    )


@criterion_clause.register
def _(criterion: MinRating):
    return NannyProfile.rating >= criterion.rating


@criterion_clause.register
def _(criterion: IsAvailable):
    return NannyProfile.is_available.is_(criterion.available)


class SortKey(str, Enum):
    RATING = "rating"
    RATE_ASC = "rate_asc"
    RATE_DESC = "rate_desc"
    EXPERIENCE = "experience"
    REVIEWS = "reviews"
    NEWEST = "newest"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SortKey":
        """Unknown or missing keys fall back to rating."""
        try:
            return cls(value)
        except ValueError:
            return cls.RATING


ORDER_BY = {
    SortKey.RATING: (NannyProfile.rating.desc(),),
    SortKey.RATE_ASC: (NannyProfile.hourly_rate_nis.asc(),),
    SortKey.RATE_DESC: (NannyProfile.hourly_rate_nis.desc(),),
    SortKey.EXPERIENCE: (NannyProfile.years_experience.desc(),),
    SortKey.REVIEWS: (NannyProfile.reviews_count.desc(),),
    SortKey.NEWEST: (NannyProfile.created_at.desc(),),
}


class NannyRepository(BaseRepository[NannyProfile]):
    model = NannyProfile

    async def get_by_user_id(self, user_id: int, for_update: bool = False) -> Optional[NannyProfile]:
        query = select(NannyProfile).where(NannyProfile.user_id == user_id)
        if for_update:
            # Serializes writers of the aggregate columns (rating, counters)
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db_session.execute(query)
        return result.scalar_one_or_none()

    async def search(
        self,
        criteria: Sequence[object],
        sort: SortKey,
        offset: int,
        limit: int,
    ) -> Tuple[List[NannyProfile], int]:
        """Profiles matching every criterion, one page plus the match count."""
        conditions = [criterion_clause(criterion) for criterion in criteria]

        try:
            total = await self.db_session.scalar(
                select(func.count(NannyProfile.id)).where(*conditions)
            )
            result = await self.db_session.execute(
                select(NannyProfile)
                .where(*conditions)
                .order_by(*ORDER_BY[sort], NannyProfile.id.asc())
                .offset(offset)
                .limit(limit)
            )
            return list(result.scalars().all()), total or 0
        except SQLAlchemyError as e:
            logger.exception(f"Database error in nanny search: {str(e)}")
            raise

    async def update_fields(self, profile: NannyProfile, fields: dict) -> NannyProfile:
        for key, value in fields.items():
            setattr(profile, key, value)
        await self.db_session.flush()
        return profile

    def replace_languages(self, profile: NannyProfile, languages: Iterable[str]) -> None:
        wanted = _dedupe(languages)
        for entry in list(profile.language_entries):
            if entry.language not in wanted:
                profile.language_entries.remove(entry)
        current = set(profile.languages)
        for language in wanted:
            if language not in current:
                profile.language_entries.append(NannyLanguage(language=language))

    def replace_skills(self, profile: NannyProfile, skills: Iterable[str]) -> None:
        wanted = _dedupe(skills)
        for entry in list(profile.skill_entries):
            if entry.skill not in wanted:
                profile.skill_entries.remove(entry)
        current = set(profile.skills)
        for skill in wanted:
            if skill not in current:
                profile.skill_entries.append(NannySkill(skill=skill))

    def upsert_availability(self, profile: NannyProfile, slots: Iterable[dict]) -> None:
        """Insert or overwrite one slot per day of week. Days not given are kept."""
        by_day = {slot.day_of_week: slot for slot in profile.availability}
        for data in slots:
            existing = by_day.get(data["day_of_week"])
            if existing is not None:
                existing.from_time = data["from_time"]
                existing.to_time = data["to_time"]
                existing.is_available = data["is_available"]
            else:
                slot = Availability(**data)
                profile.availability.append(slot)
                by_day[slot.day_of_week] = slot

    async def record_completed_job(self, nanny_user_id: int, net_amount_nis: int) -> None:
        await self.db_session.execute(
            update(NannyProfile)
            .where(NannyProfile.user_id == nanny_user_id)
            .values(
                completed_jobs=NannyProfile.completed_jobs + 1,
                total_earnings=NannyProfile.total_earnings + net_amount_nis,
            )
            .execution_options(synchronize_session=False)
        )

    async def set_rating(self, nanny_user_id: int, rating: float, reviews_count: int) -> None:
        await self.db_session.execute(
            update(NannyProfile)
            .where(NannyProfile.user_id == nanny_user_id)
            .values(rating=rating, reviews_count=reviews_count)
            .execution_options(synchronize_session=False)
        )


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.append(value)
    return seen
