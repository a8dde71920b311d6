"""Read-only views of subscriptions for the admin surfaces."""

from typing import Any

import structlog

from backinstock_service.identifiers import ResourceKind, numeric_id, to_gid
from backinstock_service.infrastructure.shopify import ShopifyAdminClient
from backinstock_service.services.companies import CompanyDirectory
from backinstock_service.services.subscription_store import parse_subscribers
from shared.constants import (
    DEFAULT_VARIANT_TITLE,
    PRODUCT_VARIANTS_PAGE_SIZE,
    SUBSCRIBED_VARIANTS_PAGE_SIZE,
)

logger = structlog.get_logger()

PRODUCT_SUBSCRIPTIONS_QUERY = """
    query BackinstockProduct($id: ID!, $first: Int!, $namespace: String!, $key: String!) {
      product(id: $id) {
        id
        title
        variants(first: $first) {
          nodes {
            id
            title
            sku
            metafield(namespace: $namespace, key: $key) {
              value
            }
          }
        }
      }
    }
"""

SUBSCRIBED_VARIANTS_QUERY = """
    query BackInStockAll($first: Int!, $query: String!, $namespace: String!, $key: String!) {
      productVariants(first: $first, query: $query) {
        nodes {
          id
          title
          sku
          displayName
          product {
            id
            title
          }
          metafield(namespace: $namespace, key: $key) {
            value
          }
        }
      }
    }
"""


def display_title(product_title: str, variant_title: str | None) -> str:
    """Product title alone for the default variant, else "Product – Variant"."""
    if not variant_title or variant_title == DEFAULT_VARIANT_TITLE:
        return product_title
    return f"{product_title} – {variant_title}"


def attach_company_names(rows: list[dict[str, Any]], names: dict[str, str]) -> list[dict[str, Any]]:
    """Add ``companyNames`` to each row, falling back to the id when unknown."""
    return [
        {**row, "companyNames": [names.get(c, c) for c in row["companies"]]}
        for row in rows
    ]


class SubscriptionListingService:
    def __init__(self, admin: ShopifyAdminClient, namespace: str, key: str):
        self.admin = admin
        self.namespace = namespace
        self.key = key
        self.companies = CompanyDirectory(admin)

    async def list_for_product(self, product_id: str) -> list[dict[str, Any]]:
        """
        Build one row per variant of a product with its subscribed companies.

        ``companyNames`` is only attached when at least one variant has
        subscribers.
        """
        document = await self.admin.execute(
            PRODUCT_SUBSCRIPTIONS_QUERY,
            {
                "id": to_gid(product_id, ResourceKind.PRODUCT),
                "first": PRODUCT_VARIANTS_PAGE_SIZE,
                "namespace": self.namespace,
                "key": self.key,
            },
        )
        product = (document.get("data") or {}).get("product") or {}
        product_title = product.get("title") or "(Untitled product)"
        variants = (product.get("variants") or {}).get("nodes") or []

        rows = [
            {
                "variantId": v.get("id"),
                "title": display_title(product_title, v.get("title")),
                "sku": v.get("sku") or "-",
                "companies": parse_subscribers((v.get("metafield") or {}).get("value")),
            }
            for v in variants
            if v
        ]

        all_company_ids = list(dict.fromkeys(c for row in rows for c in row["companies"]))
        if not all_company_ids:
            return rows

        names = await self.companies.lookup_names(all_company_ids)
        return attach_company_names(rows, names)

    async def list_all(self) -> list[dict[str, Any]]:
        """Every variant of the shop that currently has subscribers."""
        document = await self.admin.execute(
            SUBSCRIBED_VARIANTS_QUERY,
            {
                "first": SUBSCRIBED_VARIANTS_PAGE_SIZE,
                "query": f"metafield:{self.namespace}.{self.key}:*",
                "namespace": self.namespace,
                "key": self.key,
            },
        )
        variants = ((document.get("data") or {}).get("productVariants") or {}).get("nodes") or []

        rows: list[dict[str, Any]] = []
        for v in variants:
            companies = parse_subscribers(((v or {}).get("metafield") or {}).get("value"))
            if not companies:
                continue
            product = v.get("product") or {}
            product_gid = product.get("id")
            rows.append(
                {
                    "variantId": v.get("id"),
                    "productId": numeric_id(product_gid) if product_gid else None,
                    "productTitle": product.get("title")
                    or v.get("displayName")
                    or "Untitled product/variant",
                    "variantTitle": v.get("title") or "",
                    "sku": v.get("sku") or "",
                    "companies": companies,
                }
            )

        if not rows:
            return rows

        names = await self.companies.lookup_names([c for row in rows for c in row["companies"]])
        logger.debug("Subscription overview built", variant_count=len(rows))
        return attach_company_names(rows, names)
