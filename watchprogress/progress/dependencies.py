"""FastAPI dependencies for progress tracking.

Provides dependency injection for:
- Progress service
- Request user resolution
- Error responses
"""

from typing import Annotated, Any

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.responses import ORJSONResponse

from watchprogress.config import get_settings
from watchprogress.core.context import get_request_id

from .service import (
    ProgressError,
    ProgressService,
    RegressionRejectedError,
    StorageUnavailableError,
)


async def get_progress_service(request: Request) -> ProgressService:
    """Get progress service from app state.

    Raises:
        HTTPException 503: If the service was not initialized at startup
    """
    service = getattr(request.app.state, "progress_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress service not available",
        )
    return service


async def get_request_user_id(
    user_id: str | None = Query(
        None, alias="userId", description="User ID (defaults to the default user)"
    ),
) -> str:
    """Resolve the ``userId`` query parameter."""
    return user_id or get_settings().default_user_id


# Type aliases for dependency injection
ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service)]
RequestUserId = Annotated[str, Depends(get_request_user_id)]


STATUS_MAP = {
    "missing_video_id": status.HTTP_400_BAD_REQUEST,
    "missing_user_id": status.HTTP_400_BAD_REQUEST,
    "invalid_checkpoints": status.HTTP_400_BAD_REQUEST,
    "invalid_quizzes": status.HTTP_400_BAD_REQUEST,
    "checkpoint_regression": status.HTTP_409_CONFLICT,
    "storage_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def handle_progress_error(
    error: ProgressError,
    request_id: str | None = None,
) -> ORJSONResponse:
    """Convert progress errors to JSON error responses.

    Args:
        error: Progress error
        request_id: Request id to echo back

    Returns:
        Response carrying the machine-readable ``code``
    """
    status_code = STATUS_MAP.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    content: dict[str, Any] = {
        "error": True,
        "code": error.code,
        "message": error.message,
        "status_code": status_code,
        "request_id": request_id or get_request_id(),
    }
    if isinstance(error, RegressionRejectedError):
        content["details"] = {"indices": error.indices}
    if isinstance(error, StorageUnavailableError):
        # Never leak driver details
        content["message"] = "Progress storage unavailable, please retry"

    return ORJSONResponse(status_code=status_code, content=content)
