"""FastAPI dependencies shared by the API routers."""

from typing import Annotated

import httpx
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backinstock_service.config import Settings, get_settings
from backinstock_service.infrastructure.dispatch import NotificationDispatcher
from backinstock_service.infrastructure.history import NotificationHistoryClient
from backinstock_service.infrastructure.shopify import ShopifyAdminClient
from backinstock_service.security import verify_session_token
from backinstock_service.shops import ShopContext, ShopRegistry

SettingsDep = Annotated[Settings, Depends(get_settings)]

# Missing or non-bearer credentials come through as None and are rejected
# by ``authenticate_admin`` with the service's own 401 body.
session_token_scheme = HTTPBearer(auto_error=False)
SessionTokenDep = Annotated[HTTPAuthorizationCredentials | None, Depends(session_token_scheme)]


def get_http_client(request: Request) -> httpx.AsyncClient:
    """The shared outbound HTTP client created in the application lifespan."""
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        raise RuntimeError("HTTP client is not initialized; the application lifespan has not run")
    return client


def get_shop_registry(settings: SettingsDep) -> ShopRegistry:
    return ShopRegistry.from_settings(settings)


HttpClientDep = Annotated[httpx.AsyncClient, Depends(get_http_client)]
RegistryDep = Annotated[ShopRegistry, Depends(get_shop_registry)]


def authenticate_admin(
    credentials: HTTPAuthorizationCredentials | None,
    settings: Settings,
    registry: ShopRegistry,
) -> ShopContext:
    """
    Resolve the shop of an embedded admin request from its session token.

    Raises:
        UnauthorizedError: the token is missing, invalid or expired.
        ShopNotConfiguredError: the token names a shop without credentials.
    """
    token = credentials.credentials if credentials else None
    shop_domain = verify_session_token(token, settings.shopify_api_secret, settings.shopify_api_key)
    return registry.by_domain(shop_domain)


def get_admin_shop(
    credentials: SessionTokenDep, settings: SettingsDep, registry: RegistryDep
) -> ShopContext:
    return authenticate_admin(credentials, settings, registry)


AdminShopDep = Annotated[ShopContext, Depends(get_admin_shop)]


def admin_client_for(
    shop: ShopContext, http_client: httpx.AsyncClient, settings: Settings
) -> ShopifyAdminClient:
    return ShopifyAdminClient(
        http_client,
        shop,
        api_version=settings.shopify_api_version,
        timeout=settings.shopify_api_timeout,
    )


def get_dispatcher(settings: SettingsDep, http_client: HttpClientDep) -> NotificationDispatcher:
    return NotificationDispatcher(
        http_client,
        settings.dispatch_url,
        settings.flow_shared_secret,
        timeout=settings.dispatch_timeout,
    )


def get_history_client(settings: SettingsDep, http_client: HttpClientDep) -> NotificationHistoryClient:
    return NotificationHistoryClient(
        http_client,
        settings.history_url,
        settings.flow_shared_secret,
        timeout=settings.dispatch_timeout,
    )


DispatcherDep = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
HistoryClientDep = Annotated[NotificationHistoryClient, Depends(get_history_client)]
