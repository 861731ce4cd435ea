"""
Shared FastAPI dependencies for the API routes.

Services are built per request from the request's DB session; the
``require_feature`` factory turns a plan feature into a route guard:

    @router.get("/custom-fields")
    async def list_fields(user_id: uuid.UUID = Depends(require_feature("custom_fields"))):
        ...

Order of checks is fixed: authenticate (401), then gate (403), and only
then does the handler touch user data.
"""

import uuid

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.config import Settings, get_settings
from ledgerly.core.exceptions import FeatureNotAvailableError
from ledgerly.core.plans import FEATURE_NAMES
from ledgerly.db.database import get_db
from ledgerly.db.repositories import ConfigRepository, SubscriptionRepository
from ledgerly.middleware.auth_middleware import get_current_user_id
from ledgerly.services.billing_service import BillingService
from ledgerly.services.feature_gate import FeatureGate


def get_feature_gate(db: AsyncSession = Depends(get_db)) -> FeatureGate:
    return FeatureGate(SubscriptionRepository(db), ConfigRepository(db))


def get_billing_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> BillingService:
    return BillingService(SubscriptionRepository(db), settings=settings)


def require_feature(feature: str):
    """Build a dependency that admits only users whose plan enables ``feature``.

    Resolves to the authenticated user's id.
    """
    if feature not in FEATURE_NAMES:
        raise ValueError(f"Unknown feature '{feature}'")

    async def dependency(
        user_id: uuid.UUID = Depends(get_current_user_id),
        gate: FeatureGate = Depends(get_feature_gate),
    ) -> uuid.UUID:
        check = await gate.require_feature(user_id, feature)
        if not check.allowed:
            raise FeatureNotAvailableError(feature, check.upgrade_required.value)
        return user_id

    return dependency
