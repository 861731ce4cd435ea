"""Tests for ledgerly.core.stripe_events — typed parsing of webhook events."""

import uuid
from datetime import UTC, datetime

import pytest

from conftest import stripe_event, subscription_object
from ledgerly.core.exceptions import EventAttributionError, ValidationError
from ledgerly.core.plans import Plan
from ledgerly.core.stripe_events import (
    CheckoutCompleted,
    InvoicePayment,
    SubscriptionChanged,
    SubscriptionDeleted,
    UnhandledEvent,
    parse_event,
)


def _checkout_session(user_id, plan="pro", customer="cus_123", subscription="sub_123"):
    metadata = {}
    if user_id is not None:
        metadata["user_id"] = str(user_id)
    if plan is not None:
        metadata["plan"] = plan
    return {
        "id": "cs_test_1",
        "object": "checkout.session",
        "customer": customer,
        "subscription": subscription,
        "metadata": metadata,
    }


# ─── Envelope ────────────────────────────────────────────────


class TestEnvelope:
    def test_rejects_non_object(self):
        with pytest.raises(ValidationError):
            parse_event(["not", "an", "event"])

    def test_rejects_missing_type(self):
        with pytest.raises(ValidationError):
            parse_event({"id": "evt_1", "data": {"object": {}}})

    def test_rejects_missing_data_object(self):
        with pytest.raises(ValidationError):
            parse_event({"id": "evt_1", "type": "customer.subscription.updated", "data": {}})

    def test_unknown_type_is_unhandled(self):
        event = parse_event(stripe_event("charge.refunded", {"id": "ch_1"}, event_id="evt_9"))
        assert event == UnhandledEvent(event_id="evt_9", event_type="charge.refunded")


# ─── Checkout ────────────────────────────────────────────────


class TestCheckoutCompleted:
    def test_parses_session(self):
        user_id = uuid.uuid4()
        event = parse_event(
            stripe_event("checkout.session.completed", _checkout_session(user_id), "evt_1")
        )
        assert isinstance(event, CheckoutCompleted)
        assert event.user_id == user_id
        assert event.plan == Plan.PRO
        assert event.customer_id == "cus_123"
        assert event.subscription_id == "sub_123"
        assert event.session_id == "cs_test_1"

    def test_expanded_references(self):
        user_id = uuid.uuid4()
        session = _checkout_session(
            user_id, customer={"id": "cus_x", "object": "customer"}, subscription=None
        )
        event = parse_event(stripe_event("checkout.session.completed", session))
        assert event.customer_id == "cus_x"
        assert event.subscription_id is None

    def test_missing_user_id_raises_attribution_error(self):
        with pytest.raises(EventAttributionError) as exc_info:
            parse_event(stripe_event("checkout.session.completed", _checkout_session(None)))
        assert exc_info.value.object_id == "cs_test_1"

    def test_missing_plan_raises_attribution_error(self):
        session = _checkout_session(uuid.uuid4(), plan=None)
        with pytest.raises(EventAttributionError):
            parse_event(stripe_event("checkout.session.completed", session))

    def test_malformed_user_id_raises_attribution_error(self):
        session = _checkout_session("not-a-uuid")
        with pytest.raises(EventAttributionError):
            parse_event(stripe_event("checkout.session.completed", session))


# ─── Subscriptions ───────────────────────────────────────────


class TestSubscriptionChanged:
    @pytest.mark.parametrize(
        "event_type", ["customer.subscription.created", "customer.subscription.updated"]
    )
    def test_parses_created_and_updated(self, event_type):
        user_id = uuid.uuid4()
        event = parse_event(stripe_event(event_type, subscription_object(user_id)))
        assert isinstance(event, SubscriptionChanged)
        assert event.event_type == event_type
        assert event.user_id == user_id
        assert event.status == "active"
        assert event.plan == Plan.PRO
        assert event.price_id == "price_pro_monthly"
        assert event.current_period_start == datetime.fromtimestamp(1_760_000_000, UTC)
        assert event.current_period_end == datetime.fromtimestamp(1_762_592_000, UTC)
        assert event.cancel_at_period_end is False

    def test_plan_absent_from_metadata(self):
        obj = subscription_object(uuid.uuid4(), plan=None)
        event = parse_event(stripe_event("customer.subscription.updated", obj))
        assert event.plan is None
        assert event.price_id == "price_pro_monthly"

    def test_period_falls_back_to_first_item(self):
        obj = subscription_object(uuid.uuid4())
        del obj["current_period_start"]
        del obj["current_period_end"]
        obj["items"]["data"][0]["current_period_start"] = 1_770_000_000
        obj["items"]["data"][0]["current_period_end"] = 1_772_592_000
        event = parse_event(stripe_event("customer.subscription.updated", obj))
        assert event.current_period_start == datetime.fromtimestamp(1_770_000_000, UTC)
        assert event.current_period_end == datetime.fromtimestamp(1_772_592_000, UTC)

    def test_missing_user_id_raises_attribution_error(self):
        obj = subscription_object(None)
        with pytest.raises(EventAttributionError) as exc_info:
            parse_event(stripe_event("customer.subscription.updated", obj))
        assert exc_info.value.event_type == "customer.subscription.updated"
        assert exc_info.value.object_id == "sub_123"


class TestSubscriptionDeleted:
    def test_parses(self):
        user_id = uuid.uuid4()
        obj = subscription_object(user_id, status="canceled")
        event = parse_event(stripe_event("customer.subscription.deleted", obj, "evt_del"))
        assert event == SubscriptionDeleted(
            event_id="evt_del", subscription_id="sub_123", user_id=user_id
        )

    def test_missing_user_id_raises_attribution_error(self):
        with pytest.raises(EventAttributionError):
            parse_event(stripe_event("customer.subscription.deleted", subscription_object(None)))


# ─── Invoices ────────────────────────────────────────────────


class TestInvoicePayment:
    def test_succeeded(self):
        invoice = {"id": "in_1", "subscription": "sub_123", "customer": "cus_123"}
        event = parse_event(stripe_event("invoice.payment_succeeded", invoice))
        assert isinstance(event, InvoicePayment)
        assert event.succeeded is True
        assert event.subscription_id == "sub_123"

    def test_failed(self):
        invoice = {"id": "in_2", "subscription": "sub_123", "customer": "cus_123"}
        event = parse_event(stripe_event("invoice.payment_failed", invoice))
        assert event.succeeded is False

    def test_subscription_from_parent_details(self):
        invoice = {
            "id": "in_3",
            "customer": "cus_123",
            "parent": {"subscription_details": {"subscription": "sub_nested"}},
        }
        event = parse_event(stripe_event("invoice.payment_succeeded", invoice))
        assert event.subscription_id == "sub_nested"

    def test_invoice_without_subscription(self):
        event = parse_event(stripe_event("invoice.payment_succeeded", {"id": "in_4"}))
        assert event.subscription_id is None
        assert event.customer_id is None
