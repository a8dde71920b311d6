"""Client for the external back-in-stock email dispatcher."""

from dataclasses import dataclass
from typing import Any

import httpx
import orjson
import structlog

from backinstock_service.errors import DispatchError
from shared.constants import DISPATCH_SECRET_FIELD, DISPATCHER_RESPONSE_FIELD

logger = structlog.get_logger()


@dataclass
class DispatchResult:
    status_code: int
    body: Any

    @property
    def secret_valid(self) -> bool:
        return isinstance(self.body, dict) and self.body.get("secret_valid") is True


def decode_body(response: httpx.Response) -> Any:
    """Decode a JSON body, wrapping anything else as ``{"raw": text}``."""
    try:
        return orjson.loads(response.content)
    except orjson.JSONDecodeError:
        return {"raw": response.text}


class NotificationDispatcher:
    """Posts one notification request per restocked variant."""

    def __init__(self, http_client: httpx.AsyncClient, url: str, secret: str, timeout: float = 30.0):
        self.http_client = http_client
        self.url = url
        self.secret = secret
        self.timeout = timeout

    async def send(self, payload: dict[str, Any]) -> DispatchResult:
        """
        Deliver ``payload`` with the shared secret attached.

        Raises:
            DispatchError: on transport failure or a non-2xx response.
        """
        if not self.url:
            raise DispatchError("Notification dispatcher URL is not configured")

        body = {**payload, DISPATCH_SECRET_FIELD: self.secret}
        logger.info(
            "Posting back in stock payload to dispatcher",
            product_id=payload.get("product_id"),
            subscriber_count=len(payload.get("subscribers", [])),
        )

        try:
            response = await self.http_client.post(
                self.url,
                headers={"Content-Type": "application/json"},
                content=orjson.dumps(body),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error("Error calling notification dispatcher", error=str(e))
            raise DispatchError("Error calling notification dispatcher") from e

        result = DispatchResult(status_code=response.status_code, body=decode_body(response))
        logger.info(
            "Dispatcher response",
            status=result.status_code,
            secret_valid=result.secret_valid,
            body=result.body,
        )

        if not response.is_success:
            raise DispatchError(
                "Notification dispatcher sendEmail failed",
                status=result.status_code,
                **{DISPATCHER_RESPONSE_FIELD: result.body},
            )
        return result
