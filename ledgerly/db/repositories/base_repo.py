"""
Generic async repository base class.

Provides owner-scoped data access that the entity-specific repositories
inherit. Every lookup, update, and delete of a user-owned row filters on
both the row id and the owning ``user_id``.
"""

import uuid
from typing import Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.db.models import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with owner-scoped CRUD operations.

    Subclasses specify the model class and add entity-specific queries.
    The model must have ``id`` and ``user_id`` columns.
    """

    def __init__(self, session: AsyncSession, model: type[ModelType]):
        self.session = session
        self.model = model

    async def get_owned(self, record_id: uuid.UUID, user_id: uuid.UUID) -> ModelType | None:
        """Get a record only if it belongs to ``user_id``."""
        stmt = select(self.model).where(
            self.model.id == record_id,
            self.model.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, **kwargs) -> ModelType:
        """Create a new record."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def update_owned(
        self, record_id: uuid.UUID, user_id: uuid.UUID, **kwargs
    ) -> ModelType | None:
        """Update a record owned by ``user_id``. Returns None if no such row."""
        instance = await self.get_owned(record_id, user_id)
        if instance is None:
            return None
        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)
        await self.session.flush()
        return instance

    async def delete_owned(self, record_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        """Delete a record owned by ``user_id``. Returns True if a row was removed."""
        instance = await self.get_owned(record_id, user_id)
        if instance is None:
            return False
        await self.session.delete(instance)
        await self.session.flush()
        return True

    async def count(self, user_id: uuid.UUID) -> int:
        """Count records owned by ``user_id``."""
        stmt = select(func.count()).select_from(self.model).where(
            self.model.user_id == user_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()
