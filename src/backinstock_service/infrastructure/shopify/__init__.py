"""Shopify Admin API access."""

from backinstock_service.infrastructure.shopify.client import ShopifyAdminClient

__all__ = ["ShopifyAdminClient"]
