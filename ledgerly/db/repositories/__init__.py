"""
Database repository layer for Ledgerly.

User-owned repositories inherit from BaseRepository and filter every
lookup, update, and delete by the owning user id.

Usage:
    from ledgerly.db.repositories import CustomerRepository, SubscriptionRepository

    customer_repo = CustomerRepository(session)
    customers = await customer_repo.list_with_balances(user_id)
"""

from ledgerly.db.repositories.base_repo import BaseRepository
from ledgerly.db.repositories.config_repo import ConfigRepository
from ledgerly.db.repositories.custom_field_repo import CustomFieldRepository
from ledgerly.db.repositories.customer_repo import CustomerRepository
from ledgerly.db.repositories.subscription_repo import SubscriptionRepository
from ledgerly.db.repositories.transaction_repo import TransactionRepository
from ledgerly.db.repositories.user_profile_repo import UserProfileRepository

__all__ = [
    "BaseRepository",
    "ConfigRepository",
    "CustomFieldRepository",
    "CustomerRepository",
    "SubscriptionRepository",
    "TransactionRepository",
    "UserProfileRepository",
]
