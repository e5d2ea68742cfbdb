"""Health check endpoints."""

from fastapi import APIRouter, Request

from progression_engine.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness probe - the progression service is wired and can serve."""
    settings = get_settings()
    service = getattr(request.app.state, "progression_service", None)
    return {
        "status": "ready" if service else "starting",
        "environment": settings.environment,
        "store_backend": settings.store_backend,
        "catalog_backend": settings.catalog_backend,
        "debug": settings.debug,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
