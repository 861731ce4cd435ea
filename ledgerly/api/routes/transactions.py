"""
Transaction (ledger entry) endpoints.

Provides:
- GET /api/transactions — List transactions, newest first
- POST /api/transactions — Record a debt or payment for a customer
- PATCH /api/transactions — Update a transaction
- DELETE /api/transactions — Delete a transaction

All endpoints require authentication. The referenced customer must belong
to the caller; otherwise the request fails as not found.
"""

import logging
import uuid
from datetime import date
from typing import Literal

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.core.exceptions import ResourceNotFoundError
from ledgerly.db.database import get_db
from ledgerly.db.models import Transaction
from ledgerly.db.repositories.customer_repo import CustomerRepository
from ledgerly.db.repositories.transaction_repo import TransactionRepository
from ledgerly.middleware.auth_middleware import get_current_user_id
from ledgerly.middleware.rate_limiter import RATE_LIMIT_CONFIGS, rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["Transactions"])

_write_limit = rate_limit(RATE_LIMIT_CONFIGS["write"])


# ─── Request Schemas ─────────────────────────────────────────


class CreateTransactionRequest(BaseModel):
    customer_id: uuid.UUID
    type: Literal["debt", "payment"]
    amount: float = Field(..., gt=0, description="Positive amount")
    description: str | None = Field(default=None, max_length=500)
    transaction_date: date | None = None


class UpdateTransactionRequest(BaseModel):
    transaction_id: uuid.UUID
    customer_id: uuid.UUID | None = None
    type: Literal["debt", "payment"] | None = None
    amount: float | None = Field(default=None, gt=0)
    description: str | None = Field(default=None, max_length=500)
    transaction_date: date | None = None


class DeleteTransactionRequest(BaseModel):
    transaction_id: uuid.UUID


# ─── Helpers ─────────────────────────────────────────────────


def transaction_to_dict(txn: Transaction, customer_name: str | None = None) -> dict:
    return {
        "id": str(txn.id),
        "customer_id": str(txn.customer_id),
        "customer_name": customer_name,
        "type": txn.type,
        "amount": txn.amount,
        "description": txn.description,
        "transaction_date": txn.transaction_date.isoformat(),
        "created_at": txn.created_at.isoformat() if txn.created_at else None,
    }


async def _require_owned_customer(db: AsyncSession, customer_id: uuid.UUID, user_id: uuid.UUID):
    customer = await CustomerRepository(db).get_owned(customer_id, user_id)
    if customer is None:
        raise ResourceNotFoundError("Customer not found or access denied.")
    return customer


# ─── Endpoints ───────────────────────────────────────────────


@router.get("", summary="List transactions")
async def list_transactions(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    customer_id: uuid.UUID | None = Query(default=None, alias="customerId"),
    limit: int = Query(default=100, ge=1, le=500, description="Max results"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
):
    repo = TransactionRepository(db)
    transactions = await repo.find_by_user(
        user_id=user_id,
        customer_id=customer_id,
        limit=limit,
        offset=offset,
    )
    return {
        "transactions": [
            transaction_to_dict(t, t.customer.name if t.customer else None)
            for t in transactions
        ],
        "total": len(transactions),
    }


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Record a transaction",
    dependencies=[Depends(_write_limit)],
)
async def create_transaction(
    body: CreateTransactionRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    customer = await _require_owned_customer(db, body.customer_id, user_id)

    repo = TransactionRepository(db)
    txn = await repo.create(
        user_id=user_id,
        customer_id=customer.id,
        type=body.type,
        amount=body.amount,
        description=(body.description or "").strip() or None,
        transaction_date=body.transaction_date or date.today(),
    )
    logger.info(f"Recorded {body.type} {txn.id} for customer {customer.id}")
    return {"transaction": transaction_to_dict(txn, customer.name)}


@router.patch(
    "",
    summary="Update a transaction",
    dependencies=[Depends(_write_limit)],
)
async def update_transaction(
    body: UpdateTransactionRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    updates = body.model_dump(exclude_unset=True, exclude={"transaction_id"})
    updates = {k: v for k, v in updates.items() if v is not None or k == "description"}

    if "customer_id" in updates:
        await _require_owned_customer(db, updates["customer_id"], user_id)

    repo = TransactionRepository(db)
    txn = await repo.update_owned(body.transaction_id, user_id, **updates)
    if txn is None:
        raise ResourceNotFoundError("Transaction not found or access denied.")
    return {"transaction": transaction_to_dict(txn)}


@router.delete(
    "",
    summary="Delete a transaction",
    dependencies=[Depends(_write_limit)],
)
async def delete_transaction(
    body: DeleteTransactionRequest = Body(...),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    repo = TransactionRepository(db)
    if not await repo.delete_owned(body.transaction_id, user_id):
        raise ResourceNotFoundError("Transaction not found or access denied.")
    return {"success": True}
