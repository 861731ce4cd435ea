"""
Read-only access to operator configuration.

Provides:
- GET /api/config?key=... — One value (null if unset)
- GET /api/config?prefix=... — Every value whose key starts with the prefix
- GET /api/config?plan=... — A plan's effective customer limit and features

Values stored as JSON strings are returned decoded. Plan lookups apply the
same overrides the feature gate enforces, so the client sees exactly what
the server will allow.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.api.dependencies import get_feature_gate
from ledgerly.core.exceptions import ValidationError
from ledgerly.core.plans import Plan
from ledgerly.db.database import get_db
from ledgerly.db.repositories.config_repo import ConfigRepository
from ledgerly.middleware.auth_middleware import get_current_user_id
from ledgerly.middleware.rate_limiter import RATE_LIMIT_CONFIGS, rate_limit
from ledgerly.services.feature_gate import FeatureGate

router = APIRouter(prefix="/config", tags=["Config"])


@router.get(
    "",
    summary="Read configuration values",
    dependencies=[Depends(rate_limit(RATE_LIMIT_CONFIGS["standard"]))],
)
async def read_config(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gate: FeatureGate = Depends(get_feature_gate),
    key: str | None = Query(default=None),
    prefix: str | None = Query(default=None),
    plan: str | None = Query(default=None),
):
    """Exactly one lookup runs, checked in the order key, prefix, plan."""
    repo = ConfigRepository(db)

    if key:
        return {"value": await repo.get_value(key, None)}

    if prefix:
        return {"configs": await repo.get_by_prefix(prefix)}

    if plan:
        try:
            selected = Plan(plan)
        except ValueError:
            raise ValidationError("Invalid plan. Must be free, basic, pro, or enterprise.")
        features = await gate.get_plan_features(selected)
        return {
            "config": {
                "customerLimit": features.max_customers,
                "features": features.model_dump(exclude={"max_customers"}),
            }
        }

    raise ValidationError("Please provide key, prefix, or plan parameter")
