"""
Subscription plans and the plan → feature table.

The built-in defaults here are the fallback; operators can override any
plan's features or customer cap through rows in the ``config`` table
(see ``ConfigRepository``), which the feature gate overlays on top.
"""

import logging
from enum import StrEnum

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)


class Plan(StrEnum):
    FREE = "free"
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"


# Paid tiers that can be bought through Stripe Checkout
CHECKOUT_PLANS = frozenset({Plan.PRO, Plan.ENTERPRISE})

BILLING_INTERVALS = frozenset({"monthly", "yearly"})


class PlanFeatures(BaseModel):
    """Capabilities unlocked by a plan. ``max_customers=None`` means unlimited."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    max_customers: int | None = 5
    unlimited_transactions: bool = True
    offline_mode: bool = True
    basic_reports: bool = True
    advanced_reports: bool = False
    sms_reminders: bool = False
    email_support: bool = True
    priority_support: bool = False
    data_export: bool = False
    multi_user_access: bool = False
    api_access: bool = False
    custom_integrations: bool = False
    white_label: bool = False
    pwa_install: bool = False
    theme_change: bool = False
    custom_fields: bool = False

    def is_enabled(self, feature: str) -> bool:
        """Whether ``feature`` is on. Numeric allowances count when non-zero."""
        value = getattr(self, feature)
        if value is None:
            return True
        if isinstance(value, bool):
            return value
        return value > 0


FEATURE_NAMES = frozenset(PlanFeatures.model_fields)

_PRO_FEATURES = {
    "max_customers": 500,
    "advanced_reports": True,
    "sms_reminders": True,
    "priority_support": True,
    "data_export": True,
    "multi_user_access": True,
    "api_access": True,
    "custom_integrations": True,
    "pwa_install": True,
    "theme_change": True,
    "custom_fields": True,
}

DEFAULT_PLAN_FEATURES: dict[Plan, PlanFeatures] = {
    Plan.FREE: PlanFeatures(),
    Plan.BASIC: PlanFeatures(max_customers=100),
    Plan.PRO: PlanFeatures(**_PRO_FEATURES),
    Plan.ENTERPRISE: PlanFeatures(**{**_PRO_FEATURES, "max_customers": None, "white_label": True}),
}

ENTERPRISE_FEATURES = frozenset({"white_label"})


def minimum_plan_for(feature: str) -> Plan:
    """Cheapest plan that unlocks ``feature``, used as the upgrade hint."""
    if feature in ENTERPRISE_FEATURES:
        return Plan.ENTERPRISE
    return Plan.PRO


def customer_limit_upgrade(plan: Plan) -> Plan:
    """Next tier to suggest once the customer cap is hit."""
    return Plan.BASIC if plan == Plan.FREE else Plan.PRO


def merge_features(plan: Plan, overrides: dict | None) -> PlanFeatures:
    """Overlay a partial feature mapping from config on the plan's defaults.

    Accepts both snake_case and the camelCase keys stored by the web client.
    Values are validated like any other input ("true" and "10" coerce); an
    override that cannot be coerced leaves the plan on its defaults.
    """
    base = DEFAULT_PLAN_FEATURES[plan]
    if not overrides:
        return base
    normalized = {_snake_case(k): v for k, v in overrides.items()}
    known = {k: v for k, v in normalized.items() if k in FEATURE_NAMES}
    try:
        return PlanFeatures.model_validate({**base.model_dump(), **known})
    except PydanticValidationError as e:
        logger.warning(
            f"Ignoring invalid feature config for plan {plan.value}: "
            f"{e.error_count()} validation error(s)"
        )
        return base


def _snake_case(name: str) -> str:
    out = []
    for ch in name:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)
