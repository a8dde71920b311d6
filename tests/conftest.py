"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import time

import httpx
import jwt
import orjson
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from backinstock_service.api.dependencies import get_http_client
from backinstock_service.config import Settings, ShopCredentials, get_settings
from backinstock_service.infrastructure.dispatch import NotificationDispatcher
from backinstock_service.infrastructure.shopify import ShopifyAdminClient
from backinstock_service.main import create_app
from backinstock_service.shops import ShopContext, ShopRegistry

SHOP_ID = "66638577877"
SHOP_DOMAIN = "bloom-dev.myshopify.com"
STOREFRONT_ORIGIN = "https://shop.bloom.test"
DISPATCH_URL = "https://dispatch.test/index.php?route=cronjob/backinstock/sendEmail"
HISTORY_URL = "https://dispatch.test/index.php?route=cronjob/backinstock/history"
FLOW_SECRET = "flow-secret"
APP_PROXY_SECRET = "proxy-secret"
SHOPIFY_API_KEY = "test-api-key"
SHOPIFY_API_SECRET = "test-api-secret-0123456789abcdef"


def variant_gid(numeric: str) -> str:
    return f"gid://shopify/ProductVariant/{numeric}"


def company_gid(numeric: str) -> str:
    return f"gid://shopify/Company/{numeric}"


class FakeShopify:
    """In-memory stand-in for the Admin GraphQL API, dispatched on operation name."""

    def __init__(self) -> None:
        self.variants: dict[str, dict[str, Any]] = {}
        self.products: dict[str, dict[str, Any]] = {}
        self.companies: dict[str, dict[str, Any]] = {}
        self.failing_companies: set[str] = set()
        self.metafield_user_errors: list[dict[str, Any]] = []
        self.fail_writes = False
        self.fail_reads = False
        self.malformed_variant_nodes = False
        self.requests: list[dict[str, Any]] = []

    def add_variant(
        self,
        numeric: str,
        subscribers: list[str] | None = None,
        raw_metafield: str | None = None,
        sku: str = "SKU-1",
        title: str = "Red",
        product_id: str = "gid://shopify/Product/1001",
        product_title: str = "Rose Bouquet",
        handle: str | None = "rose-bouquet",
    ) -> str:
        gid = variant_gid(numeric)
        value = raw_metafield
        if subscribers is not None:
            value = orjson.dumps(subscribers).decode()
        self.variants[gid] = {
            "id": gid,
            "sku": sku,
            "title": title,
            "displayName": f"{product_title} - {title}",
            "product_id": product_id,
            "metafield": value,
        }
        self.products.setdefault(product_id, {"id": product_id, "title": product_title, "handle": handle})
        return gid

    def add_company(self, numeric: str, name: str, email: str | None) -> None:
        self.companies[company_gid(numeric)] = {"name": name, "email": email}

    def subscribers(self, numeric: str) -> list[str]:
        value = self.variants[variant_gid(numeric)]["metafield"]
        return orjson.loads(value) if value else []

    # -- GraphQL resolution -------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = orjson.loads(request.content)
        query, variables = body["query"], body.get("variables") or {}
        self.requests.append(body)

        if "SetBackinstockMetafield" in query:
            return self._metafields_set(variables)
        if "VariantNotifyCompanies" in query or "BackInStockVariant" in query:
            if self.fail_reads:
                return httpx.Response(500, json={"errors": "internal"})
            return httpx.Response(200, json={"data": {"productVariant": self._variant(variables["id"])}})
        if "BackInStockCompany" in query:
            return self._company(variables["companyId"])
        if "BackinstockCompanies" in query:
            nodes = [
                {"id": gid, "name": self.companies[gid]["name"]} if gid in self.companies else None
                for gid in variables["ids"]
            ]
            return httpx.Response(200, json={"data": {"nodes": nodes}})
        if "BackinstockProduct" in query:
            return httpx.Response(200, json={"data": {"product": self._product(variables["id"])}})
        if "BackInStockAll" in query:
            nodes = [self._variant(gid) for gid in self.variants if self.variants[gid]["metafield"]]
            if self.malformed_variant_nodes:
                nodes = ["oops"]
            return httpx.Response(200, json={"data": {"productVariants": {"nodes": nodes}}})
        return httpx.Response(400, json={"errors": [{"message": "unknown operation"}]})

    def _variant(self, gid: str) -> dict[str, Any] | None:
        v = self.variants.get(gid)
        if v is None:
            return None
        value = v["metafield"]
        return {
            "id": v["id"],
            "sku": v["sku"],
            "title": v["title"],
            "displayName": v["displayName"],
            "inventoryQuantity": 0,
            "product": self.products[v["product_id"]],
            "metafield": {"value": value} if value is not None else None,
        }

    def _product(self, gid: str) -> dict[str, Any] | None:
        product = self.products.get(gid)
        if product is None:
            return None
        variants = [self._variant(g) for g, v in self.variants.items() if v["product_id"] == gid]
        if self.malformed_variant_nodes:
            variants = ["oops"]
        return {"id": gid, "title": product["title"], "variants": {"nodes": variants}}

    def _company(self, gid: str) -> httpx.Response:
        if gid in self.failing_companies:
            return httpx.Response(500, json={"errors": "boom"})
        company = self.companies.get(gid)
        if company is None:
            return httpx.Response(200, json={"data": {"company": None}})
        email = company["email"]
        main_contact = {
            "id": "gid://shopify/CompanyContact/1",
            "customer": {"email": None, "defaultEmailAddress": {"emailAddress": email} if email else None},
        }
        return httpx.Response(
            200,
            json={"data": {"company": {"id": gid, "name": company["name"], "mainContact": main_contact}}},
        )

    def _metafields_set(self, variables: dict[str, Any]) -> httpx.Response:
        if self.fail_writes:
            return httpx.Response(503, json={"errors": "unavailable"})
        if self.metafield_user_errors:
            payload = {"metafields": [], "userErrors": self.metafield_user_errors}
            return httpx.Response(200, json={"data": {"metafieldsSet": payload}})

        written = []
        for mf in variables["metafields"]:
            assert mf["type"] == "json"
            self.variants[mf["ownerId"]]["metafield"] = mf["value"]
            written.append({"id": "gid://shopify/Metafield/1", **mf})
        return httpx.Response(200, json={"data": {"metafieldsSet": {"metafields": written, "userErrors": []}}})


class FakeDispatcher:
    """Records dispatch calls and answers with a configurable status."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.status_code = 200
        self.history: list[dict[str, Any]] = []
        self.history_ok = True

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = orjson.loads(request.content)
        if "history" in str(request.url):
            return httpx.Response(200, json={"ok": self.history_ok, "data": self.history})
        self.calls.append(body)
        return httpx.Response(self.status_code, json={"secret_valid": body.get("flowSecretHeader") == FLOW_SECRET})


@pytest.fixture
def fake_shopify() -> FakeShopify:
    return FakeShopify()


@pytest.fixture
def fake_dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture
def transport(fake_shopify: FakeShopify, fake_dispatcher: FakeDispatcher) -> httpx.MockTransport:
    def route(request: httpx.Request) -> httpx.Response:
        if request.url.host == SHOP_DOMAIN:
            return fake_shopify.handle(request)
        return fake_dispatcher.handle(request)

    return httpx.MockTransport(route)


@pytest_asyncio.fixture
async def http_client(transport: httpx.MockTransport) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=transport) as client:
        yield client


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        shops={
            SHOP_ID: ShopCredentials(
                api_domain=SHOP_DOMAIN,
                access_token="shpat_test",
                storefront_domain="shop.bloom.test",
                storefront_origins=[STOREFRONT_ORIGIN],
            )
        },
        flow_shared_secret=FLOW_SECRET,
        app_proxy_secret=APP_PROXY_SECRET,
        shopify_api_key=SHOPIFY_API_KEY,
        shopify_api_secret=SHOPIFY_API_SECRET,
        dispatch_url=DISPATCH_URL,
        history_url=HISTORY_URL,
        subscribe_response_format="json",
    )


@pytest.fixture
def shop(test_settings: Settings) -> ShopContext:
    return ShopRegistry.from_settings(test_settings).resolve(SHOP_ID)


@pytest.fixture
def admin(http_client: httpx.AsyncClient, shop: ShopContext) -> ShopifyAdminClient:
    return ShopifyAdminClient(http_client, shop)


@pytest.fixture
def dispatcher(http_client: httpx.AsyncClient) -> NotificationDispatcher:
    return NotificationDispatcher(http_client, DISPATCH_URL, FLOW_SECRET)


@pytest.fixture
def app(test_settings: Settings, transport: httpx.MockTransport) -> Any:
    """Create test application with outbound HTTP routed to the fakes."""

    def get_test_settings() -> Settings:
        return test_settings

    outbound = httpx.AsyncClient(transport=transport)

    def get_test_http_client() -> httpx.AsyncClient:
        return outbound

    app = create_app(test_settings)
    app.dependency_overrides[get_settings] = get_test_settings
    app.dependency_overrides[get_http_client] = get_test_http_client
    return app


@pytest.fixture
def client(app: Any) -> TestClient:
    """Create synchronous test client."""
    return TestClient(app)


@pytest.fixture
def flow_headers() -> dict[str, str]:
    return {"X-Flow-Secret": FLOW_SECRET}


def session_token(
    shop_domain: str = SHOP_DOMAIN,
    secret: str = SHOPIFY_API_SECRET,
    audience: str = SHOPIFY_API_KEY,
    expires_in: int = 60,
) -> str:
    """Mint an embedded admin session token the way Shopify App Bridge does."""
    now = int(time.time())
    claims = {
        "iss": f"https://{shop_domain}/admin",
        "dest": f"https://{shop_domain}",
        "aud": audience,
        "sub": "42",
        "exp": now + expires_in,
        "nbf": now - 5,
        "iat": now - 5,
        "jti": "00000000-0000-0000-0000-000000000000",
        "sid": "session",
    }
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def make_session_token() -> Callable[..., str]:
    return session_token


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {session_token()}"}
