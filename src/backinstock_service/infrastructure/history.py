"""Client for the external notification history store."""

import httpx
import orjson
import structlog
from pydantic import BaseModel, ValidationError, field_validator

from backinstock_service.errors import HistoryUnavailableError
from shared.constants import DISPATCH_SECRET_FIELD

logger = structlog.get_logger()


class HistoryRecord(BaseModel):
    """One subscription as remembered by the history store."""

    company_id: str
    variant_id: str
    created_at: str
    restock_at: str | None = None

    @field_validator("company_id", "variant_id", mode="before")
    @classmethod
    def coerce_id(cls, v: str | int) -> str:
        return str(v)


class HistoryResponse(BaseModel):
    ok: bool
    data: list[HistoryRecord] = []


class NotificationHistoryClient:
    def __init__(self, http_client: httpx.AsyncClient, url: str, secret: str, timeout: float = 30.0):
        self.http_client = http_client
        self.url = url
        self.secret = secret
        self.timeout = timeout

    async def fetch(self, shop_id: str) -> list[HistoryRecord]:
        """Return the subscription history for a shop."""
        if not self.url:
            raise HistoryUnavailableError("Notification history store is not configured")

        try:
            response = await self.http_client.post(
                self.url,
                headers={"Content-Type": "application/json"},
                content=orjson.dumps({"shop_id": shop_id, DISPATCH_SECRET_FIELD: self.secret}),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error("History store request failed", shop_id=shop_id, error=str(e))
            raise HistoryUnavailableError("Error calling notification history store") from e

        if not response.is_success:
            logger.error(
                "History store HTTP error",
                shop_id=shop_id,
                status=response.status_code,
                body=response.text,
            )
            raise HistoryUnavailableError(
                "Notification history store failed", status=response.status_code
            )

        try:
            parsed = HistoryResponse.model_validate_json(response.content)
        except ValidationError as e:
            logger.error("History store response invalid", shop_id=shop_id, error=str(e))
            raise HistoryUnavailableError("Notification history store returned an invalid response") from e

        if not parsed.ok:
            raise HistoryUnavailableError("Notification history store reported failure")

        return parsed.data
