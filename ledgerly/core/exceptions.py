"""
Custom exception hierarchy for Ledgerly.

All application-specific exceptions inherit from LedgerlyError,
enabling catch-all handling at the API layer while allowing
fine-grained handling in business logic.
"""


class LedgerlyError(Exception):
    """Base exception for all Ledgerly application errors."""

    def __init__(self, message: str = "", details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# ─── Request Errors ───────────────────────────────────────────


class ValidationError(LedgerlyError):
    """A request field is missing or violates a constraint."""

    pass


class AuthenticationError(LedgerlyError):
    """No valid session accompanies the request."""

    pass


class ResourceNotFoundError(LedgerlyError):
    """
    The resource does not exist or belongs to another user.

    Both cases share one error so a non-owner cannot confirm existence.
    """

    pass


# ─── Plan / Feature Errors ────────────────────────────────────


class FeatureNotAvailableError(LedgerlyError):
    """The user's plan does not include the requested feature."""

    def __init__(self, feature: str, upgrade_required: str, **kwargs):
        self.feature = feature
        self.upgrade_required = upgrade_required
        message = (
            f"This feature requires a {upgrade_required} subscription. "
            "Please upgrade to access."
        )
        super().__init__(message=message, **kwargs)


class PlanLimitExceededError(LedgerlyError):
    """A countable plan allowance (e.g. customers) is used up."""

    def __init__(self, limit: int, current_count: int, upgrade_required: str, **kwargs):
        self.limit = limit
        self.current_count = current_count
        self.upgrade_required = upgrade_required
        message = (
            f"You have reached your customer limit of {limit}. "
            "Please upgrade to add more customers."
        )
        super().__init__(message=message, **kwargs)


# ─── Billing Errors ───────────────────────────────────────────


class BillingError(LedgerlyError):
    """General billing failure."""

    pass


class BillingNotConfiguredError(BillingError):
    """Stripe keys or base prices are missing from configuration."""

    pass


class PriceNotConfiguredError(BillingError):
    """No Stripe price ID is configured for the requested plan and interval."""

    pass


class BillingProviderError(BillingError):
    """Stripe rejected the request or could not be reached."""

    pass


class WebhookSignatureError(BillingError):
    """Webhook signature is missing, malformed, or does not match the payload."""

    pass


class EventAttributionError(BillingError):
    """A verified webhook event carries no metadata tying it to a user."""

    def __init__(self, event_type: str, object_id: str | None, **kwargs):
        self.event_type = event_type
        self.object_id = object_id
        message = f"Missing attribution metadata on {event_type} ({object_id})"
        super().__init__(message=message, **kwargs)
