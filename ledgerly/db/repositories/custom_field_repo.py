"""
Custom field definition repository.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.db.models import CustomFieldDefinition
from ledgerly.db.repositories.base_repo import BaseRepository


class CustomFieldRepository(BaseRepository[CustomFieldDefinition]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, CustomFieldDefinition)

    async def find_by_user(self, user_id: uuid.UUID) -> list[CustomFieldDefinition]:
        stmt = (
            select(CustomFieldDefinition)
            .where(CustomFieldDefinition.user_id == user_id)
            .order_by(CustomFieldDefinition.sort_order, CustomFieldDefinition.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def slug_exists(self, user_id: uuid.UUID, slug: str) -> bool:
        stmt = select(CustomFieldDefinition.id).where(
            CustomFieldDefinition.user_id == user_id,
            CustomFieldDefinition.slug == slug,
        )
        result = await self.session.execute(stmt)
        return result.first() is not None
