"""Conversion between bare numeric ids and Shopify global ids (GIDs)."""

from enum import Enum

from backinstock_service.errors import InvalidIdentifierError
from shared.constants import GID_PREFIX, SHOPIFY_GID_ROOT


class ResourceKind(str, Enum):
    """Shopify resource types this service addresses by GID."""

    PRODUCT_VARIANT = "ProductVariant"
    PRODUCT = "Product"
    COMPANY = "Company"
    SHOP = "Shop"


def _clean(value: str | int) -> str:
    cleaned = str(value).strip() if value is not None else ""
    if not cleaned:
        raise InvalidIdentifierError("Identifier must not be empty")
    return cleaned


def is_gid(value: str) -> bool:
    return value.startswith(GID_PREFIX)


def to_gid(value: str | int, kind: ResourceKind) -> str:
    """
    Return the fully qualified GID for ``value``.

    Values that are already GIDs are returned unchanged, so the function is
    idempotent. Anything else is treated as the numeric tail; it is not
    checked to actually be numeric.
    """
    cleaned = _clean(value)
    if is_gid(cleaned):
        return cleaned
    return f"{SHOPIFY_GID_ROOT}/{kind.value}/{cleaned}"


def numeric_id(value: str | int) -> str:
    """Return the trailing segment of a GID, or the value itself."""
    cleaned = _clean(value)
    if not is_gid(cleaned):
        return cleaned
    tail = cleaned.rsplit("/", 1)[-1]
    if not tail:
        raise InvalidIdentifierError(f"Identifier has no trailing segment: {cleaned}")
    return tail


def numeric_int(value: str | int) -> int:
    """Parse the trailing segment of an id as an integer."""
    tail = numeric_id(value)
    try:
        return int(tail)
    except ValueError:
        raise InvalidIdentifierError(f"Identifier is not numeric: {value}") from None
