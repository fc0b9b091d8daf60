"""Request context tracking using contextvars.

Log entries emitted anywhere below a request handler pick up the request id
and the progress key being worked on without passing them around.
"""

from contextvars import ContextVar
from typing import Any
from uuid import uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
video_id_var: ContextVar[str | None] = ContextVar("video_id", default=None)


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context, generating one if missing."""
    rid = request_id or str(uuid4())
    request_id_var.set(rid)
    return rid


def set_progress_context(video_id: str | None, user_id: str | None) -> None:
    """Bind the (video, user) pair a request is operating on."""
    video_id_var.set(video_id)
    user_id_var.set(user_id)


def get_context() -> dict[str, Any]:
    """Get the non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = request_id_var.get()
    if request_id:
        context["request_id"] = request_id

    user_id = user_id_var.get()
    if user_id:
        context["user_id"] = user_id

    video_id = video_id_var.get()
    if video_id:
        context["video_id"] = video_id

    return context


def clear_context() -> None:
    """Reset all context variables at the end of a request."""
    request_id_var.set("")
    user_id_var.set(None)
    video_id_var.set(None)
