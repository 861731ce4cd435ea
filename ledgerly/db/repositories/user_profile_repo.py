"""
User profile repository.
"""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.db.models import UserProfile


class UserProfileRepository:
    """One profile per user, keyed by the user's own id.

    A caller can only ever address its own row: every method takes the
    authenticated user id as the primary key.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: uuid.UUID) -> UserProfile | None:
        return await self.session.get(UserProfile, user_id)

    async def create(self, user_id: uuid.UUID, **fields) -> UserProfile:
        profile = UserProfile(id=user_id, **fields)
        self.session.add(profile)
        await self.session.flush()
        return profile

    async def update(self, user_id: uuid.UUID, **fields) -> UserProfile | None:
        """Apply ``fields`` to the user's profile. Returns None if there is none."""
        profile = await self.get(user_id)
        if profile is None:
            return None
        for key, value in fields.items():
            setattr(profile, key, value)
        await self.session.flush()
        return profile
