"""Restock notification fan-out.

Triggered by Shopify Flow when a variant's inventory changes. When the
quantity crosses from out of stock to in stock, every subscribed company is
resolved to an email address and a single request is posted to the
notification dispatcher. The subscriber list is cleared only after the
dispatcher accepted the request, so a failed dispatch can be retried by
re-running the Flow.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel, Field, StrictFloat, StrictInt

from backinstock_service.errors import (
    AdminAPIError,
    BackInStockError,
    InvalidIdentifierError,
    ProductIdentifierError,
    VariantNotFoundError,
)
from backinstock_service.identifiers import ResourceKind, numeric_int, to_gid
from backinstock_service.infrastructure.dispatch import NotificationDispatcher
from backinstock_service.infrastructure.shopify import ShopifyAdminClient
from backinstock_service.services.companies import CompanyDirectory, Recipient
from backinstock_service.services.subscription_store import SubscriptionStore, parse_subscribers
from backinstock_service.shops import ShopContext
from shared.constants import (
    DISPATCHER_RESPONSE_FIELD,
    REASON_NO_EMAILS,
    REASON_NO_SUBSCRIBERS,
    REASON_THRESHOLD_NOT_CROSSED,
)

logger = structlog.get_logger()

RESTOCK_VARIANT_QUERY = """
    query BackInStockVariant($id: ID!, $namespace: String!, $key: String!) {
      productVariant(id: $id) {
        id
        sku
        displayName
        inventoryQuantity
        product {
          id
          title
          handle
        }
        metafield(namespace: $namespace, key: $key) {
          value
        }
      }
    }
"""


class StockRestoredEvent(BaseModel):
    """Inventory change reported by Shopify Flow."""

    shop_id: str | int = Field(alias="shopId")
    variant_id: str | int = Field(alias="variantId")
    inventory_quantity: StrictInt | StrictFloat = Field(alias="inventoryQuantity")
    previous_inventory_quantity: StrictInt | StrictFloat = Field(alias="previousInventoryQuantity")


@dataclass
class RestockOutcome:
    skipped: bool = False
    reason: str | None = None
    sent: int = 0
    product_id: int | None = None
    dispatcher_response: Any = None
    recipients: list[Recipient] = field(default_factory=list)
    failed_companies: list[str] = field(default_factory=list)

    def to_body(self, shop_id_raw: str | int | None = None, shop_id: str | None = None) -> dict[str, Any]:
        if self.skipped:
            return {"ok": True, "skipped": True, "reason": self.reason}
        return {
            "ok": True,
            "sent": self.sent,
            "product_id": self.product_id,
            "shopIdRaw": shop_id_raw,
            "shopIdNormalized": shop_id,
            DISPATCHER_RESPONSE_FIELD: self.dispatcher_response,
        }


def crossed_restock_threshold(previous: float, new: float) -> bool:
    """True only when inventory moves from ``<= 0`` to ``> 0``."""
    return previous <= 0 and new > 0


def build_product_url(domain: str, handle: str | None, product_id: int) -> str:
    if handle:
        return f"https://{domain}/products/{handle}"
    return f"https://{domain}/products/{product_id}"


class RestockNotifier:
    def __init__(
        self,
        admin: ShopifyAdminClient,
        store: SubscriptionStore,
        companies: CompanyDirectory,
        dispatcher: NotificationDispatcher,
    ):
        self.admin = admin
        self.store = store
        self.companies = companies
        self.dispatcher = dispatcher

    async def handle(self, event: StockRestoredEvent, shop: ShopContext) -> RestockOutcome:
        if not crossed_restock_threshold(event.previous_inventory_quantity, event.inventory_quantity):
            logger.info(
                "Inventory did not cross from <= 0 to > 0, skipping",
                previous=event.previous_inventory_quantity,
                current=event.inventory_quantity,
            )
            return RestockOutcome(skipped=True, reason=REASON_THRESHOLD_NOT_CROSSED)

        variant_gid = to_gid(event.variant_id, ResourceKind.PRODUCT_VARIANT)
        variant = await self._load_variant(variant_gid)

        company_ids = parse_subscribers((variant.get("metafield") or {}).get("value"))
        if not company_ids:
            logger.info("No subscribed companies, nothing to notify", variant_id=variant_gid)
            return RestockOutcome(skipped=True, reason=REASON_NO_SUBSCRIBERS)

        recipients, failed = await self.resolve_recipients(company_ids)
        if not recipients:
            logger.info(
                "No recipients with email found",
                variant_id=variant_gid,
                failed_companies=failed,
            )
            return RestockOutcome(skipped=True, reason=REASON_NO_EMAILS, failed_companies=failed)

        product = variant.get("product") or {}
        try:
            product_id = numeric_int(product.get("id") or "")
        except InvalidIdentifierError:
            logger.error("Could not derive numeric product_id", product_gid=product.get("id"))
            raise ProductIdentifierError("Could not derive product_id from product GID") from None

        payload = {
            "product_id": product_id,
            "product_title": product.get("title") or "",
            "variant_title": variant.get("displayName") or "",
            "sku": variant.get("sku") or "",
            "product_url": build_product_url(
                shop.credentials.public_domain, product.get("handle"), product_id
            ),
            "subscribers": [r.email for r in recipients],
        }
        result = await self.dispatcher.send(payload)

        try:
            await self.store.clear_subscribers(variant_gid)
        except BackInStockError as e:
            # Emails are already out, so a failed clear only leaves a stale list
            logger.error("Failed to clear subscriber metafield", variant_id=variant_gid, error=e.message)

        logger.info(
            "Back in stock notification sent",
            variant_id=variant_gid,
            product_id=product_id,
            sent=len(recipients),
        )
        return RestockOutcome(
            sent=len(recipients),
            product_id=product_id,
            dispatcher_response=result.body,
            recipients=recipients,
            failed_companies=failed,
        )

    async def resolve_recipients(self, company_ids: list[str]) -> tuple[list[Recipient], list[str]]:
        """
        Resolve all companies concurrently.

        Returns the recipients that resolved to an email, in subscription
        order, and the ids that failed or had no email.
        """
        results = await asyncio.gather(
            *(self.companies.resolve_recipient(c) for c in company_ids),
            return_exceptions=True,
        )

        recipients: list[Recipient] = []
        failed: list[str] = []
        for company_id, result in zip(company_ids, results):
            if isinstance(result, Recipient):
                recipients.append(result)
                continue
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error("Error loading company", company_id=company_id, error=str(result))
            failed.append(company_id)
        return recipients, failed

    async def _load_variant(self, variant_gid: str) -> dict[str, Any]:
        try:
            document = await self.admin.execute(
                RESTOCK_VARIANT_QUERY,
                {"id": variant_gid, "namespace": self.store.namespace, "key": self.store.key},
            )
        except AdminAPIError as e:
            raise AdminAPIError(
                "Error loading variant via Admin API", status=e.status, adminError=e.message
            ) from e
        variant = (document.get("data") or {}).get("productVariant")
        if not variant:
            logger.error("Variant not found in Admin API", variant_id=variant_gid)
            raise VariantNotFoundError("Variant not found")
        return variant
