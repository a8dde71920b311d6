"""FastAPI application entry point."""

import structlog
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backinstock_service import __version__
from backinstock_service.api.v1.router import ADMIN_PREFIX, STOREFRONT_PREFIX, api_router
from backinstock_service.config import Settings, get_settings
from backinstock_service.errors import BackInStockError
from backinstock_service.middleware.cors import PathScopedCORSMiddleware
from backinstock_service.middleware.request_context import RequestContextMiddleware
from backinstock_service.shops import ShopRegistry

API_PREFIX = "/api/v1"

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if get_settings().debug else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(get_settings().log_level),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    settings = app.state.settings
    logger.info(
        "Starting Back-in-Stock Bridge",
        app_env=settings.app_env,
        debug=settings.debug,
        shops=sorted(settings.shops),
    )

    app.state.http_client = httpx.AsyncClient()

    yield

    await app.state.http_client.aclose()
    logger.info("Shutting down Back-in-Stock Bridge")


async def handle_service_error(request: Request, exc: BackInStockError) -> JSONResponse:
    """Render service errors as ``{"ok": false, "error": ...}``."""
    logger.warning("Request failed", status=exc.status_code, error=exc.message)
    return JSONResponse(exc.to_body(), status_code=exc.status_code)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Render anything else as a generic 500 without leaking details."""
    logger.exception("Unhandled error", path=request.url.path, error_type=type(exc).__name__)
    return JSONResponse({"ok": False, "error": "Internal error"}, status_code=500)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    registry = ShopRegistry.from_settings(settings)

    app = FastAPI(
        title="Back-in-Stock Bridge API",
        description="Back-in-stock subscriptions for B2B companies and restock notifications",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        PathScopedCORSMiddleware,
        policies=[
            (
                API_PREFIX + ADMIN_PREFIX,
                {
                    "allow_origins": ["*"],
                    "allow_methods": ["GET", "OPTIONS"],
                    "allow_headers": ["Content-Type", "Authorization"],
                },
            ),
            (
                API_PREFIX + STOREFRONT_PREFIX,
                {
                    "allow_origins": registry.storefront_origins(),
                    "allow_methods": ["GET", "POST", "OPTIONS"],
                    "allow_headers": ["Content-Type"],
                },
            ),
        ],
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(BackInStockError, handle_service_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(api_router, prefix=API_PREFIX)

    @app.get("/healthz", tags=["Health"])
    async def healthz() -> dict[str, str]:
        logger.debug("healthz hit")
        return {"status": "ok", "source": "healthz route"}

    return app


app = create_app()


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "backinstock_service.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.api_workers,
    )


if __name__ == "__main__":
    run()
