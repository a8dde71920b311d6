"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter

from backinstock_service.api.v1 import admin, flow, health, storefront

ADMIN_PREFIX = "/admin"
STOREFRONT_PREFIX = "/storefront"

api_router = APIRouter()

# Include all routers
api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    admin.router,
    prefix=ADMIN_PREFIX,
    tags=["Admin"],
)

api_router.include_router(
    storefront.router,
    prefix=STOREFRONT_PREFIX,
    tags=["Storefront"],
)

api_router.include_router(
    flow.router,
    tags=["Shopify Flow"],
)
