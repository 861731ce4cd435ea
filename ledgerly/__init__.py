"""Ledgerly: credit-ledger API with Stripe subscription billing."""

__version__ = "0.1.0"
