import os

os.environ.setdefault("ENABLE_FILE_LOGGING", "false")
os.environ.setdefault("ENABLE_REQUEST_LOGGING", "false")

from dataclasses import dataclass
from datetime import datetime, timezone

import pytest

from core.database import Database
from core.security import TokenPayload, create_access_token
from models import NannyLanguage, NannyProfile, NannySkill, User
from models.user import Role


@dataclass
class Seed:
    parent_id: int
    other_parent_id: int
    nanny_id: int
    nanny_profile_id: int
    second_nanny_id: int
    second_nanny_profile_id: int
    admin_id: int


def at(hour: int, minute: int = 0, day: int = 1) -> datetime:
    return datetime(2025, 1, day, hour, minute, tzinfo=timezone.utc)


def actor(user_id: int, role: Role) -> TokenPayload:
    return TokenPayload(user_id=user_id, role=role.value)


def auth_header(user_id: int, role: Role) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, role.value)}"}


@pytest.fixture
async def database():
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def seed(database) -> Seed:
    async with database.session() as session:
        parent = User(email="dana@example.com", full_name="Dana Levi", role=Role.PARENT)
        other_parent = User(email="yossi@example.com", full_name="Yossi Cohen", role=Role.PARENT)
        nanny = User(email="maya@example.com", full_name="Maya Katz", role=Role.NANNY)
        second_nanny = User(email="noa@example.com", full_name="Noa Peretz", role=Role.NANNY)
        admin = User(email="admin@example.com", full_name="Site Admin", role=Role.ADMIN)

        nanny_profile = NannyProfile(
            user=nanny,
            headline="Warm and experienced",
            hourly_rate_nis=60,
            years_experience=5,
            city="Tel Aviv",
            latitude=32.0853,
            longitude=34.7818,
            language_entries=[NannyLanguage(language="Hebrew"), NannyLanguage(language="English")],
            skill_entries=[NannySkill(skill="First Aid")],
        )
        second_profile = NannyProfile(
            user=second_nanny,
            hourly_rate_nis=45,
            years_experience=2,
            city="Jerusalem",
            latitude=31.7683,
            longitude=35.2137,
            language_entries=[NannyLanguage(language="Hebrew")],
        )
        session.add_all([parent, other_parent, nanny, second_nanny, admin, nanny_profile, second_profile])
        await session.commit()

        return Seed(
            parent_id=parent.id,
            other_parent_id=other_parent.id,
            nanny_id=nanny.id,
            nanny_profile_id=nanny_profile.id,
            second_nanny_id=second_nanny.id,
            second_nanny_profile_id=second_profile.id,
            admin_id=admin.id,
        )
