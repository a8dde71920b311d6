"""Admin-facing subscription views.

Called by the product details admin block and the embedded app pages. Each
request carries a Shopify session token as ``Authorization: Bearer <jwt>``;
the shop is taken from the verified token, never from the query string.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from backinstock_service.api.dependencies import (
    AdminShopDep,
    HistoryClientDep,
    HttpClientDep,
    RegistryDep,
    SessionTokenDep,
    SettingsDep,
    admin_client_for,
    authenticate_admin,
)
from backinstock_service.errors import UnauthorizedError
from backinstock_service.infrastructure.history import HistoryRecord
from backinstock_service.services.subscription_listing import SubscriptionListingService

logger = structlog.get_logger()

router = APIRouter()


class SubscriptionRow(BaseModel):
    variantId: str | None
    productId: str | None
    productTitle: str
    variantTitle: str
    sku: str
    companies: list[str]
    companyNames: list[str]


class SubscriptionsResponse(BaseModel):
    rows: list[SubscriptionRow]


class HistoryResponse(BaseModel):
    ok: bool
    records: list[HistoryRecord]


@router.get("/list")
async def list_product_subscriptions(
    credentials: SessionTokenDep,
    settings: SettingsDep,
    registry: RegistryDep,
    http_client: HttpClientDep,
    product_id: str | None = Query(None, alias="productId"),
) -> JSONResponse:
    """
    Subscriptions for every variant of one product.

    Returns ``[]`` with 200 when ``productId`` is missing and ``[]`` with 500
    on any failure other than a rejected session token, so the admin block
    can always render.
    """
    if not product_id:
        logger.error("Missing productId in subscription list request")
        return JSONResponse([], status_code=200)

    try:
        shop = authenticate_admin(credentials, settings, registry)
        listing = SubscriptionListingService(
            admin_client_for(shop, http_client, settings),
            settings.metafield_namespace,
            settings.metafield_key,
        )
        rows: list[dict[str, Any]] = await listing.list_for_product(product_id)
    except UnauthorizedError:
        raise
    except Exception:
        logger.exception("Error building subscription list", product_id=product_id)
        return JSONResponse([], status_code=500)

    return JSONResponse(rows, status_code=200)


@router.get("/subscriptions", response_model=SubscriptionsResponse)
async def list_all_subscriptions(
    shop: AdminShopDep,
    settings: SettingsDep,
    http_client: HttpClientDep,
) -> SubscriptionsResponse:
    """Every variant of the shop that has at least one subscribed company."""
    listing = SubscriptionListingService(
        admin_client_for(shop, http_client, settings),
        settings.metafield_namespace,
        settings.metafield_key,
    )
    rows = await listing.list_all()
    return SubscriptionsResponse(rows=[SubscriptionRow(**row) for row in rows])


@router.get("/history", response_model=HistoryResponse)
async def notification_history(shop: AdminShopDep, history: HistoryClientDep) -> HistoryResponse:
    """Past subscriptions and restock notifications kept by the history store."""
    records = await history.fetch(shop.shop_id)
    return HistoryResponse(ok=True, records=records)
