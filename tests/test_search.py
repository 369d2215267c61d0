import pytest

from core.errors import NotFoundError
from models import NannyLanguage, NannyProfile, NannySkill, User
from models.user import Role
from repositories.nanny import SortKey
from schemas.nanny import AvailabilitySlot, NannyProfileUpdate, NannySearchParams
from services.search_service import SearchService

TEL_AVIV = {"lat": 32.0853, "lng": 34.7818}


@pytest.fixture
async def catalog(database, seed):
    """Adds a Haifa nanny, one without coordinates and one marked unavailable."""
    async with database.session() as session:
        haifa = User(email="lior@example.com", full_name="Lior Ben", role=Role.NANNY)
        nowhere = User(email="tal@example.com", full_name="Tal Mor", role=Role.NANNY)
        away = User(email="gal@example.com", full_name="Gal Dor", role=Role.NANNY)
        session.add_all([
            NannyProfile(
                user=haifa, hourly_rate_nis=80, years_experience=10, city="Haifa",
                latitude=32.7940, longitude=34.9896, rating=4.8, reviews_count=12,
                language_entries=[NannyLanguage(language="Russian")],
                skill_entries=[NannySkill(skill="Cooking"), NannySkill(skill="First Aid")],
            ),
            NannyProfile(
                user=nowhere, hourly_rate_nis=50, years_experience=1, city="tel aviv - jaffa",
                rating=3.9, reviews_count=3,
            ),
            NannyProfile(user=away, hourly_rate_nis=40, years_experience=20, city="Tel Aviv", is_available=False),
        ])
        await session.commit()
    return seed


async def search(database, **params):
    async with database.session() as session:
        return await SearchService(session).search(NannySearchParams(**params))


def names(response):
    return [nanny.user.full_name for nanny in response.nannies]


def test_unknown_sort_key_falls_back_to_rating():
    assert SortKey.parse("cheapest") == SortKey.RATING
    assert SortKey.parse(None) == SortKey.RATING
    assert SortKey.parse("rate_asc") == SortKey.RATE_ASC


async def test_default_search_sorts_by_rating(database, catalog):
    response = await search(database)

    assert response.pagination.total == 5
    assert "Gal Dor" in names(response)
    assert names(response)[:2] == ["Lior Ben", "Tal Mor"]
    assert all(nanny.distance_km is None for nanny in response.nannies)


async def test_city_filter_is_case_insensitive_substring(database, catalog):
    response = await search(database, city="TEL AVIV")
    assert sorted(names(response)) == ["Gal Dor", "Maya Katz", "Tal Mor"]


async def test_rate_experience_and_rating_filters(database, catalog):
    assert names(await search(database, min_rate=50, max_rate=60, sort_by="rate_asc")) == ["Tal Mor", "Maya Katz"]
    assert names(await search(database, min_years=5, sort_by="experience")) == ["Gal Dor", "Lior Ben", "Maya Katz"]
    assert names(await search(database, min_rating=4.5)) == ["Lior Ben"]


async def test_language_and_skill_filters(database, catalog):
    assert sorted(names(await search(database, language="Hebrew"))) == ["Maya Katz", "Noa Peretz"]
    assert sorted(names(await search(database, skill="First Aid"))) == ["Lior Ben", "Maya Katz"]
    assert names(await search(database, language="Hebrew", skill="Cooking")) == []


async def test_unavailable_profiles_still_match_filters(database, catalog):
    response = await search(database, city="Tel Aviv", min_years=15)
    assert names(response) == ["Gal Dor"]
    assert response.pagination.total == 1


async def test_availability_is_an_optional_filter(database, catalog):
    assert names(await search(database, is_available=False)) == ["Gal Dor"]
    available = await search(database, is_available=True)
    assert "Gal Dor" not in names(available)
    assert available.pagination.total == 4


async def test_distance_rounds_halves_up(database, catalog, monkeypatch):
    monkeypatch.setattr("services.search_service.haversine_km", lambda *args: 0.35)
    response = await search(database, city="Tel Aviv", **TEL_AVIV)
    by_name = {nanny.user.full_name: nanny.distance_km for nanny in response.nannies}
    assert by_name["Maya Katz"] == 0.4

    inside = await search(database, city="Tel Aviv", radius_km=0.4, **TEL_AVIV)
    assert names(inside) == ["Maya Katz"]


async def test_sort_orders(database, catalog):
    assert names(await search(database, sort_by="rate_desc")) == ["Lior Ben", "Maya Katz", "Tal Mor", "Noa Peretz", "Gal Dor"]
    assert names(await search(database, sort_by="reviews"))[0] == "Lior Ben"
    assert names(await search(database, sort_by="newest"))[-1] in {"Maya Katz", "Noa Peretz"}


async def test_distance_is_reported_when_origin_given(database, catalog):
    response = await search(database, sort_by="rate_asc", **TEL_AVIV)
    by_name = {nanny.user.full_name: nanny.distance_km for nanny in response.nannies}

    assert by_name["Maya Katz"] == 0.0
    assert by_name["Tal Mor"] is None
    assert by_name["Gal Dor"] is None
    assert by_name["Noa Peretz"] == pytest.approx(54, abs=1.5)
    assert by_name["Lior Ben"] == pytest.approx(82, abs=3)


async def test_radius_applies_to_fetched_page_only(database, catalog):
    response = await search(database, radius_km=60, sort_by="rate_asc", **TEL_AVIV)

    assert sorted(names(response)) == ["Maya Katz", "Noa Peretz"]
    # Total still counts matches before the radius
    assert response.pagination.total == 5

    first_page = await search(database, radius_km=60, sort_by="rate_desc", limit=2, **TEL_AVIV)
    assert names(first_page) == ["Maya Katz"]


async def test_radius_without_origin_is_ignored(database, catalog):
    response = await search(database, radius_km=1)
    assert len(response.nannies) == 5


async def test_page_size_is_capped(database, catalog):
    response = await search(database, limit=500)
    assert response.pagination.limit == 50


async def test_get_profile_includes_reviews(database, seed):
    async with database.session() as session:
        detail = await SearchService(session).get_profile(seed.nanny_profile_id)
        with pytest.raises(NotFoundError):
            await SearchService(session).get_profile(9999)

    assert detail.profile.user.full_name == "Maya Katz"
    assert detail.profile.languages == ["English", "Hebrew"]
    assert detail.reviews == []


async def test_update_my_profile(database, seed):
    update = NannyProfileUpdate(
        headline="Certified and playful",
        hourly_rate_nis=70,
        languages=["Hebrew", "French", "French"],
        skills=[],
        availability=[
            AvailabilitySlot(day_of_week=0, from_time="08:00", to_time="14:00"),
            AvailabilitySlot(day_of_week=3, from_time="16:00", to_time="20:00", is_available=False),
        ],
    )
    async with database.session() as session:
        profile = await SearchService(session).update_my_profile(seed.nanny_id, update)

    assert profile.headline == "Certified and playful"
    assert profile.hourly_rate_nis == 70
    assert sorted(profile.languages) == ["French", "Hebrew"]
    assert profile.skills == []
    assert {slot.day_of_week for slot in profile.availability} == {0, 3}

    # Re-sending a day overwrites it
    async with database.session() as session:
        await SearchService(session).update_my_profile(
            seed.nanny_id,
            NannyProfileUpdate(availability=[AvailabilitySlot(day_of_week=0, from_time="09:00", to_time="12:00")]),
        )
    async with database.session() as session:
        stored = await SearchService(session).get_my_profile(seed.nanny_id)

    assert stored.city == "Tel Aviv"
    assert [(s.day_of_week, s.from_time) for s in stored.availability] == [(0, "09:00"), (3, "16:00")]
    assert stored.languages == ["French", "Hebrew"]


async def test_my_profile_requires_a_profile(database, seed):
    async with database.session() as session:
        with pytest.raises(NotFoundError):
            await SearchService(session).get_my_profile(seed.parent_id)
