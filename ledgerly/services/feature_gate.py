"""
Feature gate: decides whether a user's current plan includes a capability.

Reads the subscription row on every call (no caching at this layer) and
never writes: a user without a row is treated as an implicit free plan.
The plan → feature table comes from ``ledgerly.core.plans`` overlaid with
operator overrides from the ``config`` table.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from ledgerly.core.plans import (
    FEATURE_NAMES,
    Plan,
    PlanFeatures,
    customer_limit_upgrade,
    merge_features,
    minimum_plan_for,
)
from ledgerly.db.repositories.config_repo import MISSING, ConfigRepository
from ledgerly.db.repositories.subscription_repo import SubscriptionRepository

logger = logging.getLogger(__name__)


@dataclass
class SubscriptionSnapshot:
    """Read-only view of a user's subscription plus its effective features."""

    user_id: uuid.UUID
    plan: Plan
    status: str
    features: PlanFeatures
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False

    def to_dict(self) -> dict:
        return {
            "user_id": str(self.user_id),
            "plan": self.plan.value,
            "status": self.status,
            "current_period_start": _iso(self.current_period_start),
            "current_period_end": _iso(self.current_period_end),
            "cancel_at_period_end": self.cancel_at_period_end,
            "has_billing_account": self.stripe_customer_id is not None,
            "features": self.features.model_dump(),
        }


@dataclass
class FeatureCheck:
    """Outcome of a gate decision. ``upgrade_required`` is set only on deny."""

    allowed: bool
    subscription: SubscriptionSnapshot
    reason: str | None = None
    upgrade_required: Plan | None = None


class FeatureGate:
    """Plan-based authorization for protected endpoints."""

    def __init__(
        self,
        subscription_repo: SubscriptionRepository,
        config_repo: ConfigRepository,
    ):
        self._subscriptions = subscription_repo
        self._config = config_repo

    async def get_plan_features(self, plan: Plan) -> PlanFeatures:
        """Built-in features for ``plan`` with any ``config`` overrides applied."""
        overrides = await self._config.get_value(f"plans.{plan.value}.features", None)
        if overrides is not None and not isinstance(overrides, dict):
            logger.warning(f"Ignoring malformed feature config for plan {plan.value}")
            overrides = None
        features = merge_features(plan, overrides)

        limit = await self._config.get_value(f"plans.{plan.value}.customer_limit")
        if limit is not MISSING:
            features = features.model_copy(
                update={"max_customers": _parse_limit(limit, features.max_customers)}
            )
        return features

    async def get_subscription(self, user_id: uuid.UUID) -> SubscriptionSnapshot:
        """Current subscription for ``user_id``; implicit free plan if no row."""
        row = await self._subscriptions.get_by_user_id(user_id)
        if row is None:
            return SubscriptionSnapshot(
                user_id=user_id,
                plan=Plan.FREE,
                status="active",
                features=await self.get_plan_features(Plan.FREE),
            )

        plan = Plan(row.plan)
        return SubscriptionSnapshot(
            user_id=user_id,
            plan=plan,
            status=row.status,
            features=await self.get_plan_features(plan),
            stripe_customer_id=row.stripe_customer_id,
            stripe_subscription_id=row.stripe_subscription_id,
            current_period_start=row.current_period_start,
            current_period_end=row.current_period_end,
            cancel_at_period_end=row.cancel_at_period_end,
        )

    async def require_feature(self, user_id: uuid.UUID, feature: str) -> FeatureCheck:
        """
        Check whether the user's plan enables ``feature``.

        Raises:
            ValueError: ``feature`` is not a known feature name.
        """
        if feature not in FEATURE_NAMES:
            raise ValueError(f"Unknown feature '{feature}'")

        subscription = await self.get_subscription(user_id)
        if subscription.features.is_enabled(feature):
            return FeatureCheck(allowed=True, subscription=subscription)

        upgrade = minimum_plan_for(feature)
        return FeatureCheck(
            allowed=False,
            subscription=subscription,
            reason=(
                f"This feature requires a {upgrade.value} subscription. "
                "Please upgrade to access."
            ),
            upgrade_required=upgrade,
        )

    async def check_customer_limit(self, user_id: uuid.UUID, current_count: int) -> FeatureCheck:
        """Whether one more customer fits under the plan's cap."""
        subscription = await self.get_subscription(user_id)
        limit = subscription.features.max_customers
        if limit is None or current_count < limit:
            return FeatureCheck(allowed=True, subscription=subscription)

        return FeatureCheck(
            allowed=False,
            subscription=subscription,
            reason=f"You have reached your customer limit of {limit}.",
            upgrade_required=customer_limit_upgrade(subscription.plan),
        )


def _parse_limit(value, fallback: int | None) -> int | None:
    if value is None or value in ("null", "unlimited"):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
