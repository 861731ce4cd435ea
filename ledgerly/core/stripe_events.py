"""
Typed parsing of verified Stripe webhook events.

Stripe payloads are loosely-typed JSON. ``parse_event`` turns an event
envelope into one of a fixed set of dataclasses keyed by event type,
validating the fields each handler depends on. Events that cannot be
attributed to a user raise ``EventAttributionError`` so the caller can
drop them instead of guessing.

Must only be called on payloads whose signature has already been verified.
"""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from ledgerly.core.exceptions import EventAttributionError, ValidationError
from ledgerly.core.plans import Plan


class StripeEventType(StrEnum):
    CHECKOUT_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: str
    session_id: str
    user_id: uuid.UUID
    plan: Plan
    customer_id: str | None
    subscription_id: str | None


@dataclass(frozen=True)
class SubscriptionChanged:
    """``customer.subscription.created`` or ``customer.subscription.updated``."""

    event_id: str
    event_type: str
    subscription_id: str
    user_id: uuid.UUID
    status: str
    plan: Plan | None  # From metadata; None means derive from price_id
    price_id: str | None
    customer_id: str | None
    current_period_start: datetime | None
    current_period_end: datetime | None
    cancel_at_period_end: bool


@dataclass(frozen=True)
class SubscriptionDeleted:
    event_id: str
    subscription_id: str
    user_id: uuid.UUID


@dataclass(frozen=True)
class InvoicePayment:
    event_id: str
    invoice_id: str
    succeeded: bool
    subscription_id: str | None
    customer_id: str | None


@dataclass(frozen=True)
class UnhandledEvent:
    event_id: str
    event_type: str


StripeEvent = (
    CheckoutCompleted
    | SubscriptionChanged
    | SubscriptionDeleted
    | InvoicePayment
    | UnhandledEvent
)


def parse_event(event: dict) -> StripeEvent:
    """
    Parse a decoded Stripe event envelope.

    Raises:
        ValidationError: the envelope itself is malformed.
        EventAttributionError: a handled event lacks ``user_id`` metadata
            (or ``plan`` for checkout sessions).
    """
    if not isinstance(event, dict):
        raise ValidationError("Webhook payload is not a JSON object")

    event_id = event.get("id") or ""
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object")
    if not event_type or not isinstance(obj, dict):
        raise ValidationError("Webhook payload is missing type or data.object")

    match event_type:
        case StripeEventType.CHECKOUT_COMPLETED:
            return _parse_checkout(event_id, obj)
        case StripeEventType.SUBSCRIPTION_CREATED | StripeEventType.SUBSCRIPTION_UPDATED:
            return _parse_subscription_changed(event_id, event_type, obj)
        case StripeEventType.SUBSCRIPTION_DELETED:
            return _parse_subscription_deleted(event_id, obj)
        case StripeEventType.INVOICE_PAYMENT_SUCCEEDED:
            return _parse_invoice(event_id, obj, succeeded=True)
        case StripeEventType.INVOICE_PAYMENT_FAILED:
            return _parse_invoice(event_id, obj, succeeded=False)
        case _:
            return UnhandledEvent(event_id=event_id, event_type=event_type)


# ─── Per-type parsers ────────────────────────────────────────


def _parse_checkout(event_id: str, session: dict) -> CheckoutCompleted:
    metadata = session.get("metadata") or {}
    user_id = _user_id(metadata)
    plan = _plan_or_none(metadata.get("plan"))
    if user_id is None or plan is None:
        raise EventAttributionError(StripeEventType.CHECKOUT_COMPLETED, session.get("id"))

    return CheckoutCompleted(
        event_id=event_id,
        session_id=session.get("id") or "",
        user_id=user_id,
        plan=plan,
        customer_id=_object_id(session.get("customer")),
        subscription_id=_object_id(session.get("subscription")),
    )


def _parse_subscription_changed(
    event_id: str, event_type: str, subscription: dict
) -> SubscriptionChanged:
    metadata = subscription.get("metadata") or {}
    user_id = _user_id(metadata)
    if user_id is None:
        raise EventAttributionError(event_type, subscription.get("id"))

    first_item = _first_item(subscription)
    price = first_item.get("price") or {}

    # Newer API versions moved the period bounds onto subscription items
    period_start = subscription.get("current_period_start") or first_item.get(
        "current_period_start"
    )
    period_end = subscription.get("current_period_end") or first_item.get(
        "current_period_end"
    )

    return SubscriptionChanged(
        event_id=event_id,
        event_type=event_type,
        subscription_id=subscription.get("id") or "",
        user_id=user_id,
        status=subscription.get("status") or "incomplete",
        plan=_plan_or_none(metadata.get("plan")),
        price_id=price.get("id") if isinstance(price, dict) else price,
        customer_id=_object_id(subscription.get("customer")),
        current_period_start=_from_timestamp(period_start),
        current_period_end=_from_timestamp(period_end),
        cancel_at_period_end=bool(subscription.get("cancel_at_period_end")),
    )


def _parse_subscription_deleted(event_id: str, subscription: dict) -> SubscriptionDeleted:
    user_id = _user_id(subscription.get("metadata") or {})
    if user_id is None:
        raise EventAttributionError(StripeEventType.SUBSCRIPTION_DELETED, subscription.get("id"))

    return SubscriptionDeleted(
        event_id=event_id,
        subscription_id=subscription.get("id") or "",
        user_id=user_id,
    )


def _parse_invoice(event_id: str, invoice: dict, succeeded: bool) -> InvoicePayment:
    subscription_id = _object_id(invoice.get("subscription"))
    if subscription_id is None:
        # Newer API versions nest the subscription under invoice.parent
        details = (invoice.get("parent") or {}).get("subscription_details") or {}
        subscription_id = _object_id(details.get("subscription"))

    return InvoicePayment(
        event_id=event_id,
        invoice_id=invoice.get("id") or "",
        succeeded=succeeded,
        subscription_id=subscription_id,
        customer_id=_object_id(invoice.get("customer")),
    )


# ─── Field helpers ───────────────────────────────────────────


def _object_id(value) -> str | None:
    """Stripe references are either an ID string or an expanded object."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        return value.get("id")
    return None


def _plan_or_none(value) -> Plan | None:
    try:
        return Plan(value)
    except ValueError:
        return None


def _first_item(subscription: dict) -> dict:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def _from_timestamp(value) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), UTC)


def _user_id(metadata: dict) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(metadata["user_id"]))
    except (KeyError, ValueError):
        return None
