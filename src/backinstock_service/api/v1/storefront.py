"""Storefront subscription endpoints.

``/subscribe`` takes a plain form post from the product page widget; the shop
is inferred from the storefront ``Origin``. ``/register`` is the app proxy
variant that takes JSON and is authenticated with the app proxy signature.
"""

from html import escape

import orjson
import structlog
from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response

from backinstock_service.api.dependencies import (
    HttpClientDep,
    RegistryDep,
    SettingsDep,
    admin_client_for,
)
from backinstock_service.config import Settings
from backinstock_service.errors import (
    AdminAPIError,
    BackInStockError,
    InvalidRequestError,
    MetafieldWriteError,
)
from backinstock_service.identifiers import ResourceKind, to_gid
from backinstock_service.security import verify_app_proxy_signature
from backinstock_service.services.subscription_store import SubscriptionStore

logger = structlog.get_logger()

router = APIRouter()

THANK_YOU_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>Subscribed</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;">
  <p>&#9989; You&rsquo;ll be notified when this product is back in stock.</p>
  <p><a href="javascript:history.back()">&larr; Back to product</a></p>
</body>
</html>
"""

ERROR_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>Subscription failed</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;">
  <p>{message}</p>
  <p><a href="javascript:history.back()">&larr; Back to product</a></p>
</body>
</html>
"""


def _store_for(shop, http_client, settings: Settings) -> SubscriptionStore:
    return SubscriptionStore(
        admin_client_for(shop, http_client, settings),
        namespace=settings.metafield_namespace,
        key=settings.metafield_key,
        lock_writes=settings.serialize_subscriber_writes,
    )


def _error_response(settings: Settings, error: BackInStockError) -> Response:
    if settings.subscribe_response_format == "html":
        return HTMLResponse(
            ERROR_HTML.format(message=escape(error.message)), status_code=error.status_code
        )
    return JSONResponse(error.to_body(), status_code=error.status_code)


@router.post("/subscribe")
async def subscribe(
    request: Request,
    settings: SettingsDep,
    registry: RegistryDep,
    http_client: HttpClientDep,
    variant_id: str = Form(""),
    company_id: str = Form(""),
) -> Response:
    """Subscribe the customer's company to a variant."""
    variant_id, company_id = variant_id.strip(), company_id.strip()
    try:
        if not variant_id or not company_id:
            raise InvalidRequestError("Missing variant_id or company_id")

        shop = registry.by_origin(request.headers.get("origin"))
        variant_gid = to_gid(variant_id, ResourceKind.PRODUCT_VARIANT)
        store = _store_for(shop, http_client, settings)

        try:
            subscribers = await store.add_subscriber(variant_gid, company_id)
        except MetafieldWriteError as e:
            raise AdminAPIError("Failed to save subscription", userErrors=e.user_errors) from e
        except AdminAPIError as e:
            raise AdminAPIError("Internal error") from e
    except BackInStockError as e:
        logger.error(
            "Storefront subscribe failed",
            variant_id=variant_id,
            company_id=company_id,
            status=e.status_code,
            error=e.message,
        )
        return _error_response(settings, e)

    if settings.subscribe_response_format == "html":
        return HTMLResponse(THANK_YOU_HTML, status_code=200)
    return JSONResponse(
        {"ok": True, "variantId": variant_gid, "companyId": company_id, "subscribers": subscribers}
    )


@router.get("/subscribe")
async def subscribe_health() -> dict[str, str]:
    return {"status": "ok", "route": "storefront/subscribe"}


@router.post("/register")
async def register(
    request: Request,
    settings: SettingsDep,
    registry: RegistryDep,
    http_client: HttpClientDep,
) -> JSONResponse:
    """App proxy subscription with a JSON body ``{variantId, companyId}``."""
    verify_app_proxy_signature(list(request.query_params.multi_items()), settings.app_proxy_secret)
    shop = registry.by_domain(request.query_params.get("shop"))

    try:
        payload = orjson.loads(await request.body())
    except orjson.JSONDecodeError:
        raise InvalidRequestError("Invalid JSON body") from None

    payload = payload if isinstance(payload, dict) else {}
    variant_id = str(payload.get("variantId") or "").strip()
    company_id = str(payload.get("companyId") or "").strip()
    if not variant_id or not company_id:
        raise InvalidRequestError("Missing variantId or companyId")

    variant_gid = to_gid(variant_id, ResourceKind.PRODUCT_VARIANT)
    logger.info(
        "Backinstock register payload",
        raw_variant_id=payload.get("variantId"),
        variant_id=variant_gid,
        company_id=company_id,
    )

    store = _store_for(shop, http_client, settings)
    try:
        current = await store.add_subscriber(variant_gid, company_id)
    except MetafieldWriteError as e:
        return JSONResponse(
            {"ok": False, "error": e.message, "debug": {"userErrors": e.user_errors}},
            status_code=400,
        )
    except AdminAPIError as e:
        logger.error("Error writing subscriber metafield", variant_id=variant_gid, error=e.message)
        return JSONResponse({"ok": False, "error": "Failed to update metafield."}, status_code=500)

    return JSONResponse(
        {
            "ok": True,
            "debug": {"variantId": variant_gid, "companyId": company_id, "current": current},
        }
    )
