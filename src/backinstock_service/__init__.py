"""Back-in-stock subscriptions and restock notifications for Shopify B2B shops."""

__version__ = "1.0.0"
