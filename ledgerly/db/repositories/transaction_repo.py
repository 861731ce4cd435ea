"""
Transaction-specific database repository.
"""

import uuid
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from ledgerly.db.models import Customer, Transaction
from ledgerly.db.repositories.base_repo import BaseRepository


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for ledger entries, always scoped by the owning user."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Transaction)

    async def find_by_user(
        self,
        user_id: uuid.UUID,
        customer_id: uuid.UUID | None = None,
        start: date | None = None,
        end: date | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Transaction]:
        """Newest-first transactions, with the customer eagerly loaded."""
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.customer))
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.transaction_date.desc(), Transaction.created_at.desc())
        )
        if customer_id is not None:
            stmt = stmt.where(Transaction.customer_id == customer_id)
        if start is not None:
            stmt = stmt.where(Transaction.transaction_date >= start)
        if end is not None:
            stmt = stmt.where(Transaction.transaction_date <= end)
        stmt = stmt.limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def totals(self, user_id: uuid.UUID) -> dict[str, float]:
        """Sum of debts and payments across the user's active customers."""
        stmt = (
            select(Transaction.type, func.coalesce(func.sum(Transaction.amount), 0.0))
            .join(Customer, Customer.id == Transaction.customer_id)
            .where(
                Transaction.user_id == user_id,
                Customer.is_deleted.is_(False),
            )
            .group_by(Transaction.type)
        )
        result = await self.session.execute(stmt)
        sums = {row[0]: float(row[1]) for row in result.all()}
        return {"debt": sums.get("debt", 0.0), "payment": sums.get("payment", 0.0)}
