"""
Customer endpoints.

Provides:
- GET /api/customers — Customers with balances plus plan usage
- POST /api/customers — Create a customer (subject to the plan's customer cap)
- PATCH /api/customers — Update a customer
- DELETE /api/customers — Archive (default) or permanently delete a customer

All endpoints require authentication and operate only on the caller's rows.
"""

import logging
import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.api.dependencies import get_feature_gate
from ledgerly.core.exceptions import PlanLimitExceededError, ResourceNotFoundError, ValidationError
from ledgerly.db.database import get_db
from ledgerly.db.models import Customer
from ledgerly.db.repositories.customer_repo import CustomerRepository
from ledgerly.middleware.auth_middleware import get_current_user_id
from ledgerly.middleware.rate_limiter import RATE_LIMIT_CONFIGS, rate_limit
from ledgerly.services.feature_gate import FeatureGate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["Customers"])

_write_limit = rate_limit(RATE_LIMIT_CONFIGS["write"])


# ─── Request Schemas ─────────────────────────────────────────


class CreateCustomerRequest(BaseModel):
    name: str | None = None
    phone: str | None = None
    address: str | None = None
    notes: str | None = None
    custom_fields: dict[str, Any] | None = None


class UpdateCustomerRequest(BaseModel):
    customer_id: uuid.UUID
    name: str | None = None
    phone: str | None = None
    address: str | None = None
    notes: str | None = None
    custom_fields: dict[str, Any] | None = None


class DeleteCustomerRequest(BaseModel):
    customer_id: uuid.UUID
    hard_delete: bool = False


# ─── Helpers ─────────────────────────────────────────────────


def _clean(value: str | None) -> str | None:
    """Trim optional text; blank becomes None."""
    if value is None:
        return None
    return value.strip() or None


def customer_to_dict(customer: Customer, balance: float = 0.0) -> dict:
    return {
        "id": str(customer.id),
        "name": customer.name,
        "phone": customer.phone,
        "address": customer.address,
        "notes": customer.notes,
        "custom_fields": customer.custom_fields or {},
        "is_deleted": customer.is_deleted,
        "balance": round(balance, 2),
        "created_at": customer.created_at.isoformat() if customer.created_at else None,
        "updated_at": customer.updated_at.isoformat() if customer.updated_at else None,
    }


# ─── Endpoints ───────────────────────────────────────────────


@router.get("", summary="List customers with balances")
async def list_customers(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gate: FeatureGate = Depends(get_feature_gate),
    include_archived: bool = Query(default=False, alias="includeArchived"),
):
    """
    List the caller's customers, each with its outstanding balance
    (debts minus payments), and how much of the plan's cap is used.
    """
    repo = CustomerRepository(db)
    rows = await repo.list_with_balances(user_id, include_archived=include_archived)
    active_count = await repo.count_active(user_id)

    subscription = await gate.get_subscription(user_id)
    limit = subscription.features.max_customers

    return {
        "customers": [customer_to_dict(c, balance) for c, balance in rows],
        "totalCount": active_count,
        "subscription": {
            "plan": subscription.plan.value,
            "customerLimit": limit,
            "customersUsed": active_count,
            "customersRemaining": None if limit is None else max(0, limit - active_count),
        },
    }


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a customer",
    dependencies=[Depends(_write_limit)],
)
async def create_customer(
    body: CreateCustomerRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gate: FeatureGate = Depends(get_feature_gate),
):
    """Create a customer if the plan's customer cap allows one more."""
    if not body.name or not body.name.strip():
        raise ValidationError("Customer name is required.")

    repo = CustomerRepository(db)
    current_count = await repo.count_active(user_id)
    check = await gate.check_customer_limit(user_id, current_count)
    if not check.allowed:
        raise PlanLimitExceededError(
            limit=check.subscription.features.max_customers,
            current_count=current_count,
            upgrade_required=check.upgrade_required.value,
        )

    customer = await repo.create(
        user_id=user_id,
        name=body.name.strip(),
        phone=_clean(body.phone),
        address=_clean(body.address),
        notes=_clean(body.notes),
        custom_fields=body.custom_fields or {},
    )
    logger.info(f"Created customer {customer.id} for user {user_id}")
    return {"customer": customer_to_dict(customer)}


@router.patch(
    "",
    summary="Update a customer",
    dependencies=[Depends(_write_limit)],
)
async def update_customer(
    body: UpdateCustomerRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    updates = body.model_dump(exclude_unset=True, exclude={"customer_id"})
    if "name" in updates:
        if not updates["name"] or not updates["name"].strip():
            raise ValidationError("Customer name cannot be empty.")
        updates["name"] = updates["name"].strip()
    for key in ("phone", "address", "notes"):
        if key in updates:
            updates[key] = _clean(updates[key])
    if "custom_fields" in updates and updates["custom_fields"] is None:
        updates["custom_fields"] = {}

    repo = CustomerRepository(db)
    customer = await repo.update_owned(body.customer_id, user_id, **updates)
    if customer is None:
        raise ResourceNotFoundError("Customer not found or access denied.")

    balance = await repo.balance_for(customer.id, user_id)
    return {"customer": customer_to_dict(customer, balance)}


@router.delete(
    "",
    summary="Archive or delete a customer",
    dependencies=[Depends(_write_limit)],
)
async def delete_customer(
    body: DeleteCustomerRequest = Body(...),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Archive a customer (kept with its history, hidden from lists and the
    plan cap) or, with ``hard_delete``, remove it and its transactions.
    """
    repo = CustomerRepository(db)
    if body.hard_delete:
        removed = await repo.delete_with_transactions(body.customer_id, user_id)
    else:
        removed = await repo.update_owned(body.customer_id, user_id, is_deleted=True) is not None

    if not removed:
        raise ResourceNotFoundError("Customer not found or access denied.")

    logger.info(
        f"{'Deleted' if body.hard_delete else 'Archived'} customer {body.customer_id} "
        f"for user {user_id}"
    )
    return {"success": True}
