import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError
from models.user import DevicePlatform
from repositories.user import DeviceRepository, UserRepository
from schemas.user import DeviceRead, UserProfileRead, UserProfileUpdate

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)
        self.device_repo = DeviceRepository(db)

    async def update_profile(self, user_id: int, data: UserProfileUpdate) -> UserProfileRead:
        """
        Update the caller's name, phone or avatar. Only fields present in the request change.

        Raises:
            NotFoundError: If the user does not exist
        """
        changes = data.model_dump(exclude_unset=True)
        # full_name is NOT NULL; an explicit null leaves it unchanged
        if changes.get("full_name", "") is None:
            changes.pop("full_name")

        try:
            user = await self.user_repo.get(user_id)
            if not user:
                raise NotFoundError("User not found")
            await self.user_repo.update_fields(user, changes)
            await self.db.commit()
        except NotFoundError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error updating profile for user {user_id}: {e}")
            raise

        logger.info(f"Profile of user {user_id} updated: {sorted(changes)}")
        return UserProfileRead.model_validate(user)

    async def register_device(self, user_id: int, fcm_token: str, platform: DevicePlatform) -> DeviceRead:
        """Register a push token for the caller. Re-registering a token moves it to the caller."""
        try:
            device = await self.device_repo.upsert(user_id, fcm_token, platform)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error registering device for user {user_id}: {e}")
            raise

        logger.info(f"Device {device.id} ({platform.value}) registered for user {user_id}")
        return DeviceRead.model_validate(device)
