"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from backinstock_service import __version__
from backinstock_service.api.dependencies import RegistryDep, SettingsDep

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    timestamp: str
    shops_configured: int


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    ready: bool
    checks: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: SettingsDep, registry: RegistryDep) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns the service status, version and how many shops have Admin API
    credentials bound.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc).isoformat(),
        shops_configured=len(registry),
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(settings: SettingsDep, registry: RegistryDep) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Ready once at least one shop is bound, the Flow secret is set and the
    dispatcher URL is known. No outbound calls are made.
    """
    checks = {
        "shops": len(registry) > 0,
        "flow_secret": bool(settings.flow_shared_secret),
        "dispatcher": bool(settings.dispatch_url),
    }
    return ReadinessResponse(ready=all(checks.values()), checks=checks)


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Returns 200 while the process is serving requests."""
    return {"status": "alive"}
