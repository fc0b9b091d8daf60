"""HTTP client for the progress API."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from watchprogress.config import Settings, get_settings
from watchprogress.progress.schemas import (
    MessageResponse,
    ProgressResponse,
    SaveProgressResponse,
)


logger = structlog.get_logger(__name__)


class ProgressClientError(Exception):
    """Progress API call failed (transport error or non-2xx answer)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class ProgressClient:
    """Async client for ``/api/videos/{video_id}/progress``."""

    def __init__(
        self,
        base_url: str,
        user_id: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API root, e.g. ``http://localhost:3001``
            user_id: Sent as ``userId``; the server default user when None
            timeout: Per-request timeout in seconds
            transport: Optional transport override (tests)
        """
        self.user_id = user_id
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, user_id: str | None = None
    ) -> ProgressClient:
        """Create a client for the configured progress API."""
        settings = settings or get_settings()
        return cls(
            settings.progress_api_url,
            user_id=user_id,
            timeout=settings.progress_api_timeout,
        )

    async def __aenter__(self) -> ProgressClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _params(self) -> dict[str, str]:
        return {"userId": self.user_id} if self.user_id else {}

    async def _request(
        self,
        method: str,
        video_id: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"/api/videos/{video_id}/progress"
        try:
            response = await self._client.request(
                method, url, params=self._params(), json=json
            )
        except httpx.TimeoutException as e:
            logger.error("progress_api_timeout", method=method, video_id=video_id)
            raise ProgressClientError("Progress API timeout") from e
        except httpx.RequestError as e:
            logger.error(
                "progress_api_request_error",
                method=method,
                video_id=video_id,
                error=str(e),
            )
            raise ProgressClientError(f"Progress API request error: {e}") from e

        if response.is_error:
            code = None
            message = f"Progress API error: {response.status_code}"
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                code = body.get("code")
                message = body.get("message") or message
            logger.warning(
                "progress_api_error",
                method=method,
                video_id=video_id,
                status_code=response.status_code,
                code=code,
            )
            raise ProgressClientError(
                message, status_code=response.status_code, code=code
            )

        return response.json()

    async def read_progress(self, video_id: str) -> ProgressResponse:
        """Fetch stored progress (empty shape when none exists)."""
        data = await self._request("GET", video_id)
        return ProgressResponse.model_validate(data)

    async def save_progress(
        self,
        video_id: str,
        checkpoints: list[bool],
        quizzes: dict[str, bool] | None = None,
    ) -> SaveProgressResponse:
        """Send a snapshot; the server merges it into stored progress."""
        payload: dict[str, Any] = {"checkpoints": checkpoints}
        if quizzes is not None:
            payload["quizzes"] = quizzes
        data = await self._request("POST", video_id, json=payload)
        return SaveProgressResponse.model_validate(data)

    async def reset_progress(self, video_id: str) -> MessageResponse:
        data = await self._request("DELETE", video_id)
        return MessageResponse.model_validate(data)
