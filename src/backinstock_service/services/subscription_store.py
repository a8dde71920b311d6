"""Subscriber list storage on a variant metafield.

The list of subscribed company ids lives in a ``json`` metafield on the
product variant. Shopify has no list-append primitive for metafields, so every
subscribe is a read-modify-write of the whole array. Two concurrent subscribes
for the same variant can therefore lose an update; enable
``serialize_subscriber_writes`` to serialize them within one process.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import orjson
import structlog

from backinstock_service.errors import BackInStockError, MetafieldWriteError
from backinstock_service.identifiers import ResourceKind, to_gid
from backinstock_service.infrastructure.shopify import ShopifyAdminClient
from shared.constants import METAFIELD_KEY, METAFIELD_NAMESPACE

logger = structlog.get_logger()

VARIANT_SUBSCRIBERS_QUERY = """
    query VariantNotifyCompanies($id: ID!, $namespace: String!, $key: String!) {
      productVariant(id: $id) {
        id
        metafield(namespace: $namespace, key: $key) {
          value
        }
      }
    }
"""

# Per-variant write locks shared by every store in this process. An entry
# lives only while some write holds or awaits it.
_variant_locks: dict[str, asyncio.Lock] = {}
_variant_lock_users: dict[str, int] = {}


@asynccontextmanager
async def variant_write_lock(variant_gid: str) -> AsyncIterator[None]:
    """Serialize writes to one variant, dropping the lock once it is idle."""
    lock = _variant_locks.setdefault(variant_gid, asyncio.Lock())
    _variant_lock_users[variant_gid] = _variant_lock_users.get(variant_gid, 0) + 1
    try:
        async with lock:
            yield
    finally:
        _variant_lock_users[variant_gid] -= 1
        if not _variant_lock_users[variant_gid]:
            del _variant_lock_users[variant_gid]
            del _variant_locks[variant_gid]


def parse_subscribers(raw: Any) -> list[str]:
    """
    Decode a metafield value into a de-duplicated list of company ids.

    Never raises: absent values, malformed JSON and non-array documents all
    read as an empty list. Non-string and empty elements are dropped.
    """
    if not raw:
        return []
    try:
        parsed = orjson.loads(raw)
    except (orjson.JSONDecodeError, TypeError):
        logger.warning("Subscriber metafield is not valid JSON", raw=raw)
        return []
    if not isinstance(parsed, list):
        logger.warning("Subscriber metafield is not a JSON array", raw=raw)
        return []
    return list(dict.fromkeys(c for c in parsed if isinstance(c, str) and c))


def encode_subscribers(company_ids: list[str]) -> str:
    return orjson.dumps(company_ids).decode()


class SubscriptionStore:
    """Reads and writes the subscriber list of a variant."""

    def __init__(
        self,
        admin: ShopifyAdminClient,
        namespace: str = METAFIELD_NAMESPACE,
        key: str = METAFIELD_KEY,
        lock_writes: bool = False,
    ):
        self.admin = admin
        self.namespace = namespace
        self.key = key
        self.lock_writes = lock_writes

    @asynccontextmanager
    async def _write_guard(self, variant_gid: str) -> AsyncIterator[None]:
        if not self.lock_writes:
            yield
            return
        async with variant_write_lock(variant_gid):
            yield

    async def read_subscribers(self, variant_id: str) -> list[str]:
        """Return the subscribed company ids, or ``[]`` when they cannot be read."""
        variant_gid = to_gid(variant_id, ResourceKind.PRODUCT_VARIANT)
        try:
            document = await self.admin.execute(
                VARIANT_SUBSCRIBERS_QUERY,
                {"id": variant_gid, "namespace": self.namespace, "key": self.key},
            )
        except BackInStockError as e:
            logger.error("Error reading subscriber metafield", variant_id=variant_gid, error=e.message)
            return []

        variant = (document.get("data") or {}).get("productVariant") or {}
        raw = (variant.get("metafield") or {}).get("value")
        return parse_subscribers(raw)

    async def add_subscriber(self, variant_id: str, company_id: str) -> list[str]:
        """
        Add ``company_id`` to the variant's list if it is not already there.

        Returns:
            The full list as written.

        Raises:
            MetafieldWriteError: Shopify rejected the metafield value.
            AdminAPIError: the write could not be performed.
        """
        variant_gid = to_gid(variant_id, ResourceKind.PRODUCT_VARIANT)
        async with self._write_guard(variant_gid):
            current = await self.read_subscribers(variant_gid)
            if company_id not in current:
                current.append(company_id)

            await self._write(variant_gid, current)

        logger.info(
            "Subscriber added",
            variant_id=variant_gid,
            company_id=company_id,
            subscriber_count=len(current),
        )
        return current

    async def clear_subscribers(self, variant_id: str) -> None:
        """Reset the variant's list to an empty array."""
        variant_gid = to_gid(variant_id, ResourceKind.PRODUCT_VARIANT)
        async with self._write_guard(variant_gid):
            await self._write(variant_gid, [])
        logger.info("Subscriber metafield cleared", variant_id=variant_gid)

    async def _write(self, variant_gid: str, company_ids: list[str]) -> None:
        user_errors = await self.admin.set_json_metafield(
            variant_gid, self.namespace, self.key, encode_subscribers(company_ids)
        )
        if user_errors:
            logger.error("metafieldsSet userErrors", variant_id=variant_gid, user_errors=user_errors)
            raise MetafieldWriteError(
                user_errors[0].get("message") or "Failed to save subscription",
                user_errors=user_errors,
            )
