"""Error types raised by the back-in-stock service.

Every error carries the HTTP status it maps to and a human readable message.
The API layer renders them as ``{"ok": false, "error": <message>}`` with any
extra context merged into the body.
"""

from typing import Any


class BackInStockError(Exception):
    """Base class for all service errors."""

    status_code: int = 500

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_body(self) -> dict[str, Any]:
        return {"ok": False, "error": self.message, **self.context}


class InvalidRequestError(BackInStockError):
    """Missing or malformed caller input."""

    status_code = 400


class InvalidIdentifierError(InvalidRequestError, ValueError):
    """An identifier was empty or could not be parsed."""


class UnauthorizedError(BackInStockError):
    """Shared secret or request signature did not match."""

    status_code = 401


class VariantNotFoundError(BackInStockError):
    status_code = 404


class ShopNotConfiguredError(BackInStockError):
    """No credential binding exists for a shop, domain or origin."""

    status_code = 500


class AdminAPIError(BackInStockError):
    """The Shopify Admin API could not be reached or answered with an error."""

    status_code = 500

    def __init__(self, message: str, status: int | None = None, **context: Any):
        super().__init__(message, **context)
        self.status = status


class MetafieldWriteError(BackInStockError):
    """``metafieldsSet`` answered with user errors."""

    status_code = 400

    def __init__(self, message: str, user_errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.user_errors = user_errors or []


class ProductIdentifierError(BackInStockError):
    status_code = 500


class DispatchError(BackInStockError):
    """The notification dispatcher failed or rejected the request."""

    status_code = 502


class HistoryUnavailableError(BackInStockError):
    status_code = 502
