"""Business logic services."""

from backinstock_service.services.companies import CompanyDirectory, Recipient
from backinstock_service.services.restock_notifier import (
    RestockNotifier,
    RestockOutcome,
    StockRestoredEvent,
)
from backinstock_service.services.subscription_listing import SubscriptionListingService
from backinstock_service.services.subscription_store import SubscriptionStore

__all__ = [
    "CompanyDirectory",
    "Recipient",
    "RestockNotifier",
    "RestockOutcome",
    "StockRestoredEvent",
    "SubscriptionListingService",
    "SubscriptionStore",
]
