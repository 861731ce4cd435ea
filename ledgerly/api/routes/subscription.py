"""
Subscription status endpoint.

Provides:
- GET /api/subscription — Current plan, status, period, and effective features
"""

import uuid

from fastapi import APIRouter, Depends

from ledgerly.api.dependencies import get_feature_gate
from ledgerly.middleware.auth_middleware import get_current_user_id
from ledgerly.services.feature_gate import FeatureGate

router = APIRouter(prefix="/subscription", tags=["Billing"])


@router.get("", summary="Get current subscription status")
async def get_subscription(
    user_id: uuid.UUID = Depends(get_current_user_id),
    gate: FeatureGate = Depends(get_feature_gate),
):
    """
    Get the current user's subscription with its feature map.

    Users without a subscription row are reported on the free plan.
    """
    snapshot = await gate.get_subscription(user_id)
    return {"subscription": snapshot.to_dict()}
