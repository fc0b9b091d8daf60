"""Video progress API endpoints.

Provides routes for:
- Reading and saving per-video progress
- Resetting progress (testing/reset only)
- Listing all progress of a user (dashboard)

Progress errors propagate to the application-level handler, which renders
them through ``handle_progress_error``.
"""

from fastapi import APIRouter

from watchprogress.core.context import set_progress_context

from .dependencies import ProgressServiceDep, RequestUserId
from .schemas import (
    MessageResponse,
    ProgressResponse,
    SaveProgressRequest,
    SaveProgressResponse,
    UserProgressItem,
    UserProgressListResponse,
)


router = APIRouter(prefix="/api", tags=["progress"])


# ==============================================================================
# Video Progress Endpoints
# ==============================================================================


@router.get(
    "/videos/{video_id}/progress",
    response_model=ProgressResponse,
    summary="Get video progress",
)
async def get_video_progress(
    video_id: str,
    progress_service: ProgressServiceDep,
    user_id: RequestUserId,
) -> ProgressResponse:
    """Get stored progress for a video.

    A never-saved pair returns empty checkpoints and quizzes, not a 404.
    """
    set_progress_context(video_id, user_id)
    record = await progress_service.read_progress(video_id, user_id)
    return ProgressResponse.from_entity(record)


@router.post(
    "/videos/{video_id}/progress",
    response_model=SaveProgressResponse,
    summary="Save video progress",
)
async def save_video_progress(
    video_id: str,
    data: SaveProgressRequest,
    progress_service: ProgressServiceDep,
    user_id: RequestUserId,
) -> SaveProgressResponse:
    """Merge a client snapshot into stored progress.

    Rejects malformed snapshots (400) and snapshots that would un-complete a
    stored checkpoint (409).
    """
    set_progress_context(video_id, user_id)
    saved = await progress_service.save_progress(
        video_id=video_id,
        user_id=user_id,
        checkpoints=data.checkpoints,
        quizzes=data.quizzes,
    )
    return SaveProgressResponse.from_saved(saved)


@router.delete(
    "/videos/{video_id}/progress",
    response_model=MessageResponse,
    summary="Delete video progress",
)
async def delete_video_progress(
    video_id: str,
    progress_service: ProgressServiceDep,
    user_id: RequestUserId,
) -> MessageResponse:
    """Delete progress (for testing/reset). Idempotent."""
    set_progress_context(video_id, user_id)
    await progress_service.reset_progress(video_id, user_id)
    return MessageResponse(message="Progress deleted successfully")


# ==============================================================================
# User Progress Endpoints
# ==============================================================================


@router.get(
    "/users/{user_id}/progress",
    response_model=UserProgressListResponse,
    summary="Get all progress of a user",
)
async def get_user_progress(
    user_id: str,
    progress_service: ProgressServiceDep,
) -> UserProgressListResponse:
    """Get every video progress of a user with stats, newest first."""
    set_progress_context(None, user_id)
    items = await progress_service.list_progress(user_id)
    return UserProgressListResponse(
        progress=[UserProgressItem.from_saved(item) for item in items],
        total=len(items),
    )
