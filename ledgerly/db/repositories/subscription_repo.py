"""
Subscription-specific database repository.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.db.models import Subscription


class SubscriptionRepository:
    """Repository for the one-row-per-user ``subscriptions`` table.

    Rows are keyed by ``user_id`` rather than their own id, so this does not
    inherit the owner-scoped ``BaseRepository`` helpers.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_user_id(self, user_id: uuid.UUID) -> Subscription | None:
        stmt = select(Subscription).where(Subscription.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(self, user_id: uuid.UUID, **fields) -> Subscription:
        """
        Set ``fields`` on the user's row, creating a free/active row first if
        none exists. Plain field assignment, so re-applying the same values
        is a no-op.
        """
        subscription = await self.get_by_user_id(user_id)
        if subscription is None:
            subscription = Subscription(user_id=user_id, plan="free", status="active")
            self.session.add(subscription)

        for key, value in fields.items():
            setattr(subscription, key, value)

        await self.session.flush()
        return subscription

    async def commit(self) -> None:
        """Commit the session now instead of at the end of the request."""
        await self.session.commit()
