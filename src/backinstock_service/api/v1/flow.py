"""Shopify Flow webhook for inventory changes.

Example POST body::

    {
      "shopId": "gid://shopify/Shop/66638577877",
      "variantId": "gid://shopify/ProductVariant/44763933573333",
      "inventoryQuantity": 3,
      "previousInventoryQuantity": 0
    }
"""

from typing import Any

import orjson
import structlog
from fastapi import APIRouter, Header, Request
from pydantic import ValidationError

from backinstock_service.api.dependencies import (
    DispatcherDep,
    HttpClientDep,
    RegistryDep,
    SettingsDep,
    admin_client_for,
)
from backinstock_service.errors import InvalidRequestError
from backinstock_service.security import verify_flow_secret
from backinstock_service.services.companies import CompanyDirectory
from backinstock_service.services.restock_notifier import (
    RestockNotifier,
    RestockOutcome,
    StockRestoredEvent,
    crossed_restock_threshold,
)
from backinstock_service.services.subscription_store import SubscriptionStore
from shared.constants import FLOW_SECRET_HEADER, REASON_THRESHOLD_NOT_CROSSED

logger = structlog.get_logger()

router = APIRouter()


def parse_event(body: Any) -> StockRestoredEvent:
    """Validate the Flow payload, reporting the first problem the way Flow logs expect."""
    body = body if isinstance(body, dict) else {}
    if not body.get("shopId"):
        raise InvalidRequestError("Missing shopId")
    if not body.get("variantId"):
        raise InvalidRequestError("Missing variantId")
    try:
        return StockRestoredEvent.model_validate(body)
    except ValidationError as e:
        failed = {error["loc"][0] for error in e.errors() if error["loc"]}
        for field in ("shopId", "variantId"):
            if field in failed:
                raise InvalidRequestError(f"{field} must be a string or number") from None
        raise InvalidRequestError(
            "inventoryQuantity and previousInventoryQuantity must be numbers"
        ) from None


@router.post("/stock-restored")
async def stock_restored(
    request: Request,
    settings: SettingsDep,
    registry: RegistryDep,
    http_client: HttpClientDep,
    dispatcher: DispatcherDep,
    flow_secret: str | None = Header(None, alias=FLOW_SECRET_HEADER),
) -> dict[str, Any]:
    """Notify subscribed companies when a variant comes back in stock."""
    verify_flow_secret(flow_secret, settings.flow_shared_secret)

    try:
        body = orjson.loads(await request.body())
    except orjson.JSONDecodeError:
        logger.error("Flow payload is not valid JSON")
        raise InvalidRequestError("Invalid JSON") from None

    event = parse_event(body)
    logger.info(
        "Backinstock Flow payload",
        shop_id=event.shop_id,
        variant_id=event.variant_id,
        inventory_quantity=event.inventory_quantity,
        previous_inventory_quantity=event.previous_inventory_quantity,
    )

    # An unknown shop only matters once there is something to send
    if not crossed_restock_threshold(event.previous_inventory_quantity, event.inventory_quantity):
        logger.info("Inventory did not cross from <= 0 to > 0, skipping")
        return RestockOutcome(skipped=True, reason=REASON_THRESHOLD_NOT_CROSSED).to_body()

    shop = registry.resolve(event.shop_id)
    logger.info("Using Admin config for shop", shop_id=shop.shop_id, shop_domain=shop.api_domain)

    admin = admin_client_for(shop, http_client, settings)
    store = SubscriptionStore(
        admin,
        namespace=settings.metafield_namespace,
        key=settings.metafield_key,
        lock_writes=settings.serialize_subscriber_writes,
    )
    notifier = RestockNotifier(admin, store, CompanyDirectory(admin), dispatcher)
    outcome = await notifier.handle(event, shop)
    return outcome.to_body(shop_id_raw=event.shop_id, shop_id=shop.shop_id)


@router.get("/stock-restored")
async def stock_restored_health() -> dict[str, str]:
    return {
        "status": "ok",
        "message": "Backinstock endpoint is alive. Use POST from Shopify Flow.",
    }
