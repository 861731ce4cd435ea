"""
Stripe endpoints — Checkout, Customer Portal, and the webhook receiver.

Provides:
- POST /api/stripe/checkout — Create a Stripe Checkout Session
- POST /api/stripe/portal — Create a Stripe Customer Portal session
- POST /api/stripe/webhook — Receive Stripe events

Security:
- Webhook signature is verified over the raw body before anything is parsed
- Events without user attribution metadata are acknowledged and dropped
- No payload or signature data is logged
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel

from ledgerly.api.dependencies import get_billing_service
from ledgerly.core.exceptions import BillingNotConfiguredError, EventAttributionError
from ledgerly.core.stripe_events import parse_event
from ledgerly.middleware.auth_middleware import get_current_user, get_current_user_id
from ledgerly.middleware.rate_limiter import RATE_LIMIT_CONFIGS, rate_limit
from ledgerly.services.billing_service import BillingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stripe", tags=["Billing"])


# ─── Request / Response Schemas ──────────────────────────────


class CheckoutRequest(BaseModel):
    """Checkout session request. Values are validated by the billing service."""
    plan: str
    interval: str = "monthly"


class SessionUrlResponse(BaseModel):
    """Stripe-hosted page to redirect the browser to."""
    url: str


class WebhookAck(BaseModel):
    received: bool = True


def require_billing_configured(
    service: BillingService = Depends(get_billing_service),
) -> None:
    if not service.is_configured:
        raise BillingNotConfiguredError("Stripe is not configured. Please contact support.")


# ─── Endpoints ───────────────────────────────────────────────


@router.post(
    "/checkout",
    response_model=SessionUrlResponse,
    summary="Create Stripe Checkout Session",
    dependencies=[
        Depends(require_billing_configured),
        Depends(rate_limit(RATE_LIMIT_CONFIGS["strict"])),
    ],
)
async def create_checkout(
    body: CheckoutRequest,
    user: dict = Depends(get_current_user),
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BillingService = Depends(get_billing_service),
    x_locale: str | None = Header(default=None),
):
    """
    Create a Stripe Checkout Session for the requested plan.

    The frontend should redirect the user to the returned URL. The plan is
    applied only once Stripe confirms payment through the webhook.
    """
    url = await service.create_checkout_session(
        user_id=user_id,
        email=user.get("email"),
        plan=body.plan,
        interval=body.interval,
        locale=x_locale or "en",
    )
    return SessionUrlResponse(url=url)


@router.post(
    "/portal",
    response_model=SessionUrlResponse,
    summary="Create Stripe Customer Portal session",
    dependencies=[
        Depends(require_billing_configured),
        Depends(rate_limit(RATE_LIMIT_CONFIGS["strict"])),
    ],
)
async def create_portal(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BillingService = Depends(get_billing_service),
    x_locale: str | None = Header(default=None),
):
    """
    Create a Stripe Customer Portal session for subscription management.

    The user can change plan, cancel, or update payment methods there.
    """
    url = await service.create_portal_session(
        user_id=user_id,
        locale=x_locale or "en",
    )
    return SessionUrlResponse(url=url)


@router.post(
    "/webhook",
    response_model=WebhookAck,
    summary="Receive Stripe webhook events",
    dependencies=[Depends(require_billing_configured)],
)
async def stripe_webhook(
    request: Request,
    service: BillingService = Depends(get_billing_service),
):
    """
    Verify, parse, and apply a Stripe event.

    Handled events:
    - checkout.session.completed
    - customer.subscription.created / customer.subscription.updated
    - customer.subscription.deleted
    - invoice.payment_succeeded / invoice.payment_failed

    Any other verified event is acknowledged with 200. A failure while
    applying an event returns 500 so Stripe redelivers it.
    """
    payload = await request.body()
    event = service.verify_webhook(payload, request.headers.get("stripe-signature"))

    try:
        parsed = parse_event(event)
    except EventAttributionError as e:
        logger.error(f"Dropping Stripe event {event.get('id')}: {e.message}")
        return WebhookAck()

    await service.apply_event(parsed)
    logger.info(f"Processed Stripe event {parsed.event_id} ({event.get('type')})")
    return WebhookAck()
