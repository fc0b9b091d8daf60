"""Health check endpoints."""

from fastapi import APIRouter, Request

from watchprogress.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe: the process answers."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness probe: progress requests can be served.

    Stays ``starting`` while the store or lock backend failed to come up;
    progress endpoints answer 503 meanwhile.
    """
    ready = getattr(request.app.state, "progress_service", None) is not None
    return {
        "status": "ready" if ready else "starting",
        "ready": ready,
        "storage_backend": get_settings().storage_backend,
    }


@router.get("")
async def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
