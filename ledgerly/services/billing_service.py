"""
Stripe billing service: checkout, customer portal, and webhook state sync.

Encapsulates all Stripe SDK interactions so the API layer stays thin.
The API key is passed explicitly on every SDK call rather than set on the
``stripe`` module, so each service instance carries its own credentials.

Subscription state is written only here, keyed by the user id carried in
Stripe metadata. Every webhook handler is a plain "set these fields"
upsert: re-delivery of an event is harmless, and the last delivered
subscription event wins (there is no ordering guard).
"""

import json
import logging
import uuid
from datetime import timedelta

import stripe

from ledgerly.config import Settings, get_settings
from ledgerly.core.exceptions import (
    BillingNotConfiguredError,
    BillingProviderError,
    PriceNotConfiguredError,
    ValidationError,
    WebhookSignatureError,
)
from ledgerly.core.plans import BILLING_INTERVALS, CHECKOUT_PLANS, Plan
from ledgerly.core.stripe_events import (
    CheckoutCompleted,
    InvoicePayment,
    StripeEvent,
    SubscriptionChanged,
    SubscriptionDeleted,
    UnhandledEvent,
)
from ledgerly.db.models import utc_now
from ledgerly.db.repositories.subscription_repo import SubscriptionRepository

logger = logging.getLogger(__name__)

# Checkout writes an approximate period; the subscription event that
# follows carries the authoritative bounds.
PROVISIONAL_PERIOD = timedelta(days=30)


class BillingService:
    """Manages Stripe customers, checkout/portal sessions, and webhook events."""

    def __init__(
        self,
        subscription_repo: SubscriptionRepository,
        settings: Settings | None = None,
    ):
        self._repo = subscription_repo
        self._settings = settings or get_settings()

    @property
    def is_configured(self) -> bool:
        return self._settings.stripe_configured

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            raise BillingNotConfiguredError("Stripe is not configured. Please contact support.")

    def _price_id_for(self, plan: str, interval: str) -> str:
        """Map a (plan, interval) pair to the configured Stripe price ID."""
        if plan not in CHECKOUT_PLANS:
            raise ValidationError("Invalid plan selected.")
        if interval not in BILLING_INTERVALS:
            raise ValidationError("Invalid billing interval.")

        price_id = self._settings.stripe_price_id(plan, interval)
        if not price_id:
            raise PriceNotConfiguredError(
                "Price not configured for this plan. Please contact support.",
                details={"plan": plan, "interval": interval},
            )
        return price_id

    def _plan_for_price_id(self, price_id: str | None) -> Plan | None:
        """Map a Stripe price ID back to a plan, None if it is not one of ours."""
        if not price_id:
            return None
        for plan in CHECKOUT_PLANS:
            for interval in BILLING_INTERVALS:
                if self._settings.stripe_price_id(plan, interval) == price_id:
                    return plan
        return None

    def _redirect_url(self, locale: str, path: str) -> str:
        return f"{self._settings.app_url.rstrip('/')}/{locale}/{path}"

    # ─── Customer Management ──────────────────────────────────

    async def get_or_create_customer(self, user_id: uuid.UUID, email: str | None) -> str:
        """
        Get the user's Stripe customer ID, creating the customer on first use.

        The new ID is persisted and committed on the subscription row
        (creating a free row if the user has none) before any checkout session
        references it.
        """
        subscription = await self._repo.get_by_user_id(user_id)
        if subscription is not None and subscription.stripe_customer_id:
            return subscription.stripe_customer_id

        try:
            customer = stripe.Customer.create(
                api_key=self._settings.stripe_secret_key,
                email=email or None,
                metadata={"user_id": str(user_id)},
            )
        except stripe.StripeError as e:
            logger.error(
                f"Stripe customer creation failed for user {user_id} "
                f"(request_id={getattr(e, 'request_id', None)}): {e}"
            )
            raise BillingProviderError("Failed to create billing customer") from e

        await self._repo.upsert(user_id, stripe_customer_id=customer.id)
        # Committed on its own, independent of the checkout that follows
        await self._repo.commit()
        logger.info(f"Created Stripe customer {customer.id} for user {user_id}")
        return customer.id

    # ─── Checkout Session ─────────────────────────────────────

    async def create_checkout_session(
        self,
        user_id: uuid.UUID,
        email: str | None,
        plan: str,
        interval: str = "monthly",
        locale: str = "en",
    ) -> str:
        """
        Create a Stripe Checkout Session and return its hosted URL.

        Args:
            user_id: Authenticated user's id.
            email: User email, prefilled on the Stripe customer.
            plan: "pro" or "enterprise".
            interval: "monthly" or "yearly".
            locale: UI locale used to build the success/cancel redirect URLs.

        Returns:
            The Stripe-hosted checkout URL.
        """
        self._ensure_configured()
        price_id = self._price_id_for(plan, interval)
        customer_id = await self.get_or_create_customer(user_id, email)

        try:
            session = stripe.checkout.Session.create(
                api_key=self._settings.stripe_secret_key,
                customer=customer_id,
                mode="subscription",
                payment_method_types=["card"],
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=self._redirect_url(
                    locale, "checkout/success?session_id={CHECKOUT_SESSION_ID}"
                ),
                cancel_url=self._redirect_url(locale, "checkout/cancel"),
                metadata={"user_id": str(user_id), "plan": plan, "interval": interval},
                subscription_data={"metadata": {"user_id": str(user_id), "plan": plan}},
                allow_promotion_codes=True,
                billing_address_collection="required",
            )
        except stripe.StripeError as e:
            logger.error(
                f"Stripe checkout creation failed for user {user_id} "
                f"(request_id={getattr(e, 'request_id', None)}): {e}"
            )
            raise BillingProviderError(
                "Failed to create checkout session. Please try again."
            ) from e

        logger.info(f"Created checkout session {session.id} for user {user_id} ({plan}/{interval})")
        return session.url

    # ─── Customer Portal ──────────────────────────────────────

    async def create_portal_session(self, user_id: uuid.UUID, locale: str = "en") -> str:
        """
        Create a Stripe Customer Portal session and return its URL.

        Plan changes and cancellations made there come back as webhooks.
        """
        self._ensure_configured()
        subscription = await self._repo.get_by_user_id(user_id)
        if subscription is None or not subscription.stripe_customer_id:
            raise ValidationError("No billing account found. Subscribe to a plan first.")

        try:
            session = stripe.billing_portal.Session.create(
                api_key=self._settings.stripe_secret_key,
                customer=subscription.stripe_customer_id,
                return_url=self._redirect_url(locale, "billing"),
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe portal creation failed for user {user_id}: {e}")
            raise BillingProviderError("Failed to create billing portal session") from e

        return session.url

    # ─── Webhook Verification ─────────────────────────────────

    def verify_webhook(self, payload: bytes, signature: str | None) -> dict:
        """
        Verify a webhook's signature over the raw body, then decode it.

        Nothing in the payload is parsed until the signature checks out.

        Raises:
            WebhookSignatureError: missing header/secret or signature mismatch.
            ValidationError: verified payload is not valid JSON.
        """
        secret = self._settings.stripe_webhook_secret
        if not signature or not secret:
            logger.error("Stripe webhook rejected: missing signature header or webhook secret")
            raise WebhookSignatureError("Webhook configuration error")

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                secret,
                tolerance=self._settings.stripe_webhook_tolerance,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            logger.warning(f"Stripe webhook signature verification failed: {e}")
            raise WebhookSignatureError("Invalid signature") from e

        try:
            return json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValidationError("Invalid webhook payload") from e

    # ─── Webhook Handlers ─────────────────────────────────────

    async def apply_event(self, event: StripeEvent) -> None:
        """
        Route a parsed event to its handler and commit the result.

        The commit happens here, before the webhook is acknowledged, so a
        failed write surfaces as an error and Stripe redelivers the event.
        """
        match event:
            case CheckoutCompleted():
                await self.handle_checkout_completed(event)
            case SubscriptionChanged():
                await self.handle_subscription_changed(event)
            case SubscriptionDeleted():
                await self.handle_subscription_deleted(event)
            case InvoicePayment():
                await self.handle_invoice_payment(event)
            case UnhandledEvent():
                logger.info(f"Unhandled Stripe event type: {event.event_type} ({event.event_id})")
                return

        await self._repo.commit()

    async def handle_checkout_completed(self, event: CheckoutCompleted) -> None:
        """Activate the purchased plan immediately with a provisional period."""
        now = utc_now()
        await self._repo.upsert(
            event.user_id,
            plan=event.plan.value,
            status="active",
            stripe_customer_id=event.customer_id,
            stripe_subscription_id=event.subscription_id,
            current_period_start=now,
            current_period_end=now + PROVISIONAL_PERIOD,
        )
        logger.info(
            f"Subscription activated for user {event.user_id}, plan: {event.plan.value} "
            f"(session {event.session_id}, event {event.event_id})"
        )

    async def handle_subscription_changed(self, event: SubscriptionChanged) -> None:
        """Mirror Stripe's view of the subscription onto the row."""
        if event.status == "canceled":
            await self._revert_to_free(event.user_id)
            logger.info(
                f"Subscription {event.subscription_id} reported canceled for user "
                f"{event.user_id}, reverted to free (event {event.event_id})"
            )
            return

        plan = event.plan or self._plan_for_price_id(event.price_id) or Plan.FREE
        fields = {
            "plan": plan.value,
            "status": event.status,
            "stripe_subscription_id": event.subscription_id,
            "current_period_start": event.current_period_start,
            "current_period_end": event.current_period_end,
            "cancel_at_period_end": event.cancel_at_period_end,
        }
        if event.customer_id:
            fields["stripe_customer_id"] = event.customer_id

        await self._repo.upsert(event.user_id, **fields)
        logger.info(
            f"Subscription {event.subscription_id} updated for user {event.user_id}: "
            f"{plan.value}/{event.status} (event {event.event_id})"
        )

    async def handle_subscription_deleted(self, event: SubscriptionDeleted) -> None:
        """Revert the user to the free plan."""
        await self._revert_to_free(event.user_id)
        logger.info(
            f"Subscription {event.subscription_id} canceled for user {event.user_id}, "
            f"reverted to free (event {event.event_id})"
        )

    async def handle_invoice_payment(self, event: InvoicePayment) -> None:
        """
        Informational only: the subscription event that follows an invoice
        carries the resulting status (e.g. ``past_due`` after a failure).
        """
        if event.subscription_id is None:
            logger.info(f"Invoice {event.invoice_id} has no subscription, skipping")
            return

        if event.succeeded:
            logger.info(
                f"Payment succeeded for subscription {event.subscription_id} "
                f"(invoice {event.invoice_id})"
            )
        else:
            logger.warning(
                f"Payment failed for subscription {event.subscription_id} "
                f"(invoice {event.invoice_id})"
            )

    async def _revert_to_free(self, user_id: uuid.UUID) -> None:
        await self._repo.upsert(
            user_id,
            plan=Plan.FREE.value,
            status="canceled",
            stripe_subscription_id=None,
            current_period_start=None,
            current_period_end=None,
            cancel_at_period_end=False,
        )
