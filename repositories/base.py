"""
Base repository with the pieces every repository shares.
"""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Repositories flush; the calling service owns commit and rollback."""

    model: Type[ModelType]

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    @property
    def dialect(self) -> str:
        return self.db_session.bind.dialect.name

    def insert(self):
        """Dialect-specific INSERT that supports ``on_conflict_do_nothing``."""
        if self.dialect == "postgresql":
            return pg_insert(self.model)
        if self.dialect == "sqlite":
            return sqlite_insert(self.model)
        raise NotImplementedError(f"Upserts are not supported on {self.dialect}")

    async def get(self, id: Any) -> Optional[ModelType]:
        """Get a single record by ID."""
        result = await self.db_session.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()
