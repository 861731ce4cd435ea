"""
Customer-specific database repository.
"""

import uuid

from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.db.models import Customer, Transaction
from ledgerly.db.repositories.base_repo import BaseRepository

# Debts raise what the customer owes, payments lower it
_SIGNED_AMOUNT = case(
    (Transaction.type == "debt", Transaction.amount),
    else_=-Transaction.amount,
)


class CustomerRepository(BaseRepository[Customer]):
    """Repository for customers and their running balances."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Customer)

    async def list_with_balances(
        self,
        user_id: uuid.UUID,
        include_archived: bool = False,
    ) -> list[tuple[Customer, float]]:
        """Customers owned by ``user_id`` paired with their outstanding balance."""
        balance = func.coalesce(func.sum(_SIGNED_AMOUNT), 0.0).label("balance")
        stmt = (
            select(Customer, balance)
            .outerjoin(Transaction, Transaction.customer_id == Customer.id)
            .where(Customer.user_id == user_id)
            .group_by(Customer.id)
            .order_by(Customer.name)
        )
        if not include_archived:
            stmt = stmt.where(Customer.is_deleted.is_(False))
        result = await self.session.execute(stmt)
        return [(row[0], float(row[1])) for row in result.all()]

    async def count_active(self, user_id: uuid.UUID) -> int:
        """Count non-archived customers (what the plan cap applies to)."""
        stmt = select(func.count()).select_from(Customer).where(
            Customer.user_id == user_id,
            Customer.is_deleted.is_(False),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def balance_for(self, customer_id: uuid.UUID, user_id: uuid.UUID) -> float:
        stmt = select(func.coalesce(func.sum(_SIGNED_AMOUNT), 0.0)).where(
            Transaction.customer_id == customer_id,
            Transaction.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return float(result.scalar_one())

    async def delete_with_transactions(self, customer_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        """Hard-delete a customer and its ledger entries."""
        customer = await self.get_owned(customer_id, user_id)
        if customer is None:
            return False
        await self.session.execute(
            delete(Transaction).where(
                Transaction.customer_id == customer_id,
                Transaction.user_id == user_id,
            )
        )
        await self.session.delete(customer)
        await self.session.flush()
        return True
