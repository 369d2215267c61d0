import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from core.database import utcnow
from models.user import User, Device, DevicePlatform
from repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    model = User

    async def update_fields(self, user: User, fields: dict) -> User:
        for key, value in fields.items():
            setattr(user, key, value)
        await self.db_session.flush()
        return user


class DeviceRepository(BaseRepository[Device]):
    model = Device

    async def upsert(self, user_id: int, fcm_token: str, platform: DevicePlatform) -> Device:
        """Register a push token, re-pointing it at ``user_id`` if it already exists."""
        now = utcnow()
        statement = (
            self.insert()
            .values(user_id=user_id, fcm_token=fcm_token, platform=platform, created_at=now, updated_at=now)
            .on_conflict_do_update(
                index_elements=["fcm_token"],
                set_={"user_id": user_id, "platform": platform, "updated_at": now},
            )
        )
        try:
            await self.db_session.execute(statement)
            result = await self.db_session.execute(
                select(Device).where(Device.fcm_token == fcm_token).execution_options(populate_existing=True)
            )
            return result.scalar_one()
        except SQLAlchemyError as e:
            logger.exception(f"Database error in upsert device for user {user_id}: {str(e)}")
            raise
