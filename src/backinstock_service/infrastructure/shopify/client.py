"""Async client for the Shopify Admin GraphQL API."""

from typing import Any

import httpx
import orjson
import structlog

from backinstock_service.errors import AdminAPIError
from backinstock_service.shops import ShopContext
from shared.constants import METAFIELD_TYPE, SHOPIFY_API_VERSION

logger = structlog.get_logger()

METAFIELDS_SET_MUTATION = """
    mutation SetBackinstockMetafield($metafields: [MetafieldsSetInput!]!) {
      metafieldsSet(metafields: $metafields) {
        metafields {
          id
          namespace
          key
          value
        }
        userErrors {
          field
          message
        }
      }
    }
"""


class ShopifyAdminClient:
    """
    Minimal Admin GraphQL client bound to a single shop.

    The underlying ``httpx.AsyncClient`` is shared across requests and owned
    by the application lifespan, so this object is cheap to create per call.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        shop: ShopContext,
        api_version: str = SHOPIFY_API_VERSION,
        timeout: float = 30.0,
    ):
        self.http_client = http_client
        self.shop = shop
        self.api_version = api_version
        self.timeout = timeout

    @property
    def graphql_url(self) -> str:
        return f"https://{self.shop.api_domain}/admin/api/{self.api_version}/graphql.json"

    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Run a query or mutation and return the decoded response document.

        Raises:
            AdminAPIError: on transport failure, a non-JSON body or a non-2xx
                status. GraphQL-level ``errors`` are logged and the document
                is returned as-is.
        """
        try:
            response = await self.http_client.post(
                self.graphql_url,
                headers={
                    "Content-Type": "application/json",
                    "X-Shopify-Access-Token": self.shop.credentials.access_token,
                },
                content=orjson.dumps({"query": query, "variables": variables or {}}),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error("Admin GraphQL request failed", shop_id=self.shop.shop_id, error=str(e))
            raise AdminAPIError("Admin GraphQL request failed") from e

        try:
            document = orjson.loads(response.content)
        except orjson.JSONDecodeError:
            logger.error(
                "Admin GraphQL response not JSON",
                shop_id=self.shop.shop_id,
                status=response.status_code,
                body=response.text,
            )
            raise AdminAPIError("Admin GraphQL non-JSON response", status=response.status_code) from None

        if not response.is_success:
            logger.error(
                "Admin GraphQL HTTP error",
                shop_id=self.shop.shop_id,
                status=response.status_code,
                body=document,
            )
            raise AdminAPIError(
                f"Admin GraphQL HTTP {response.status_code}", status=response.status_code
            )

        if not isinstance(document, dict):
            raise AdminAPIError("Admin GraphQL response is not an object", status=response.status_code)

        if document.get("errors"):
            logger.error("Admin GraphQL errors", shop_id=self.shop.shop_id, errors=document["errors"])

        return document

    async def set_json_metafield(
        self, owner_id: str, namespace: str, key: str, value: str
    ) -> list[dict[str, Any]]:
        """Write a ``json`` metafield and return any user errors."""
        document = await self.execute(
            METAFIELDS_SET_MUTATION,
            {
                "metafields": [
                    {
                        "ownerId": owner_id,
                        "namespace": namespace,
                        "key": key,
                        "type": METAFIELD_TYPE,
                        "value": value,
                    }
                ]
            },
        )
        result = (document.get("data") or {}).get("metafieldsSet")
        if result is None:
            # Top-level GraphQL errors leave no mutation payload
            errors = document.get("errors") or [{"message": "metafieldsSet returned no payload"}]
            return [{"field": None, "message": e.get("message", str(e))} for e in errors]
        return result.get("userErrors") or []
