"""CORS with a different policy per path prefix.

Admin views are read from any origin, while storefront writes are only
accepted from the configured storefront domains. Each prefix gets its own
Starlette ``CORSMiddleware``; paths outside every prefix get no CORS headers.
"""

from typing import Any

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send


class PathScopedCORSMiddleware:
    def __init__(self, app: ASGIApp, policies: list[tuple[str, dict[str, Any]]]):
        self.app = app
        self.policies = [(prefix, CORSMiddleware(app, **options)) for prefix, options in policies]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            path = scope["path"]
            for prefix, cors in self.policies:
                if path.startswith(prefix):
                    await cors(scope, receive, send)
                    return
        await self.app(scope, receive, send)
