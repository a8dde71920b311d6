"""Resolution of shop ids, admin domains and storefront origins to credentials."""

from dataclasses import dataclass

import structlog

from backinstock_service.config import Settings, ShopCredentials
from backinstock_service.errors import InvalidIdentifierError, ShopNotConfiguredError
from backinstock_service.identifiers import numeric_id

logger = structlog.get_logger()


@dataclass(frozen=True)
class ShopContext:
    """A shop id together with its Admin API credentials."""

    shop_id: str
    credentials: ShopCredentials

    @property
    def api_domain(self) -> str:
        return self.credentials.api_domain


def _origin_key(origin: str) -> str:
    return origin.strip().rstrip("/").lower()


class ShopRegistry:
    """Read-only lookup table built once from settings."""

    def __init__(self, shops: dict[str, ShopCredentials], default_shop_id: str = ""):
        self._shops = dict(shops)
        self._default_shop_id = default_shop_id
        self._by_domain = {}
        self._by_origin = {}
        for shop_id, creds in self._shops.items():
            self._by_domain[creds.api_domain.lower()] = shop_id
            if creds.storefront_domain:
                self._by_domain.setdefault(creds.storefront_domain.lower(), shop_id)
            for origin in creds.storefront_origins:
                self._by_origin[_origin_key(origin)] = shop_id

    @classmethod
    def from_settings(cls, settings: Settings) -> "ShopRegistry":
        return cls(settings.shops, settings.default_shop_id)

    def __len__(self) -> int:
        return len(self._shops)

    def resolve(self, shop_id: str | int) -> ShopContext:
        """Resolve a numeric shop id or a Shop GID."""
        try:
            normalized = numeric_id(shop_id)
        except InvalidIdentifierError:
            raise ShopNotConfiguredError(
                "Unknown or misconfigured shopId", shopIdRaw=str(shop_id)
            ) from None

        creds = self._shops.get(normalized)
        if creds is None or not creds.api_domain or not creds.access_token:
            logger.error(
                "No credential binding for shop",
                shop_id_raw=str(shop_id),
                shop_id=normalized,
            )
            raise ShopNotConfiguredError(
                "Unknown or misconfigured shopId",
                shopIdRaw=str(shop_id),
                shopIdNormalized=normalized,
            )
        return ShopContext(shop_id=normalized, credentials=creds)

    def by_domain(self, domain: str | None) -> ShopContext:
        """Resolve the shop behind a ``*.myshopify.com`` domain."""
        key = (domain or "").strip().lower()
        shop_id = self._by_domain.get(key)
        if shop_id is None:
            logger.error("No credential binding for shop domain", shop_domain=key)
            raise ShopNotConfiguredError("Admin API is not available for this shop.")
        return self.resolve(shop_id)

    def by_origin(self, origin: str | None) -> ShopContext:
        """Resolve the shop for a storefront ``Origin`` header, else the default shop."""
        shop_id = self._by_origin.get(_origin_key(origin or ""))
        if shop_id is None:
            if not self._default_shop_id:
                logger.error("No credential binding for storefront origin", origin=origin)
                raise ShopNotConfiguredError("Server misconfigured")
            shop_id = self._default_shop_id
        return self.resolve(shop_id)

    def storefront_origins(self) -> list[str]:
        """All configured storefront origins, for the CORS allow-list."""
        origins: list[str] = []
        for creds in self._shops.values():
            for origin in creds.storefront_origins:
                if origin not in origins:
                    origins.append(origin)
        return origins
