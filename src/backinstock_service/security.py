"""Shared-secret, app proxy signature and admin session token checks."""

import hashlib
import hmac
from collections.abc import Iterable
from urllib.parse import urlparse

import jwt
import structlog

from backinstock_service.errors import UnauthorizedError

logger = structlog.get_logger()

SESSION_TOKEN_ALGORITHMS = ["HS256"]
SESSION_TOKEN_LEEWAY_SECONDS = 10


def verify_flow_secret(provided: str | None, expected: str) -> None:
    """Reject the request unless the Flow secret header matches. An unset secret rejects everything."""
    if not expected or not hmac.compare_digest((provided or "").encode(), expected.encode()):
        logger.error("Invalid or missing Flow secret")
        raise UnauthorizedError("Unauthorized")


def app_proxy_digest(params: Iterable[tuple[str, str]], secret: str) -> str:
    """
    Compute the Shopify app proxy signature for a query string.

    Parameters other than ``signature`` are grouped by key, repeated values
    joined with commas, formatted as ``key=value``, sorted and concatenated
    without a separator.
    """
    grouped: dict[str, list[str]] = {}
    for key, value in params:
        if key == "signature":
            continue
        grouped.setdefault(key, []).append(value)

    message = "".join(sorted(f"{key}={','.join(values)}" for key, values in grouped.items()))
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def verify_app_proxy_signature(params: list[tuple[str, str]], secret: str) -> None:
    signature = next((value for key, value in params if key == "signature"), "")
    if not secret or not signature:
        logger.error("App proxy request without signature or secret")
        raise UnauthorizedError("Unauthorized app proxy request.")

    expected = app_proxy_digest(params, secret)
    if not hmac.compare_digest(expected, signature):
        logger.error("App proxy signature mismatch")
        raise UnauthorizedError("Unauthorized app proxy request.")


def verify_session_token(token: str | None, secret: str, api_key: str) -> str:
    """
    Verify a Shopify embedded admin session token and return its shop domain.

    Session tokens are HS256 JWTs signed with the app's API secret and
    addressed to its API key (``aud``). ``dest`` names the shop, and ``iss``
    must be that shop's admin. Unset app credentials reject every token.
    """
    if not token or not secret or not api_key:
        logger.error("Admin request without session token or app credentials")
        raise UnauthorizedError("Unauthorized")

    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=SESSION_TOKEN_ALGORITHMS,
            audience=api_key,
            leeway=SESSION_TOKEN_LEEWAY_SECONDS,
            options={"require": ["exp", "nbf", "iss", "dest"]},
        )
    except jwt.PyJWTError as e:
        logger.error("Invalid session token", error=str(e))
        raise UnauthorizedError("Unauthorized") from None

    shop_domain = urlparse(str(claims["dest"])).hostname or ""
    if not shop_domain or urlparse(str(claims["iss"])).hostname != shop_domain:
        logger.error("Session token issuer does not match its shop", dest=claims["dest"], iss=claims["iss"])
        raise UnauthorizedError("Unauthorized")
    return shop_domain
