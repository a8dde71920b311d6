"""Application configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import METAFIELD_KEY, METAFIELD_NAMESPACE, SHOPIFY_API_VERSION


class ShopCredentials(BaseModel):
    """Admin API binding for one shop."""

    api_domain: str
    access_token: str
    storefront_domain: str = ""
    storefront_origins: list[str] = Field(default_factory=list)
    label: str = ""

    @field_validator("api_domain", "storefront_domain")
    @classmethod
    def strip_scheme(cls, v: str) -> str:
        v = v.strip()
        for scheme in ("https://", "http://"):
            if v.startswith(scheme):
                v = v[len(scheme):]
        return v.rstrip("/")

    @field_validator("storefront_origins", mode="before")
    @classmethod
    def parse_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            v = v.split(",")
        return [origin.strip().rstrip("/") for origin in v if origin.strip()]

    @property
    def public_domain(self) -> str:
        """Host used when building product links for customers."""
        return self.storefront_domain or self.api_domain


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "backinstock-bridge"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 4

    # -------------------------------------------------------------------------
    # Shopify Admin API
    # -------------------------------------------------------------------------
    shopify_api_version: str = SHOPIFY_API_VERSION
    shopify_api_timeout: float = 30.0
    metafield_namespace: str = METAFIELD_NAMESPACE
    metafield_key: str = METAFIELD_KEY

    # Keyed by numeric shop id, e.g.
    # SHOPS='{"42102259871": {"api_domain": "nz.myshopify.com", "access_token": "shpat_..."}}'
    shops: dict[str, ShopCredentials] = Field(default_factory=dict)
    default_shop_id: str = ""

    @field_validator("shops", mode="after")
    @classmethod
    def normalize_shop_keys(cls, v: dict[str, ShopCredentials]) -> dict[str, ShopCredentials]:
        return {key.strip().rsplit("/", 1)[-1]: creds for key, creds in v.items()}

    # -------------------------------------------------------------------------
    # Security
    # -------------------------------------------------------------------------
    flow_shared_secret: str = ""
    app_proxy_secret: str = ""
    # App credentials used to verify embedded admin session tokens
    shopify_api_key: str = ""
    shopify_api_secret: str = ""

    # -------------------------------------------------------------------------
    # Notification Dispatcher and History Store
    # -------------------------------------------------------------------------
    dispatch_url: str = "https://dreampim.com/index.php?route=cronjob/backinstock/sendEmail"
    dispatch_timeout: float = 30.0
    history_url: str = ""

    # -------------------------------------------------------------------------
    # Subscription Settings
    # -------------------------------------------------------------------------
    subscribe_response_format: Literal["html", "json"] = "html"
    # Off by default: concurrent subscribes to one variant may lose an update.
    serialize_subscriber_writes: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
