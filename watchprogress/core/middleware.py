"""Request middleware: request ids and access logging."""

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from watchprogress.core.context import clear_context, set_request_id


logger = structlog.get_logger(__name__)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request id to the logging context and logs each request.

    The id comes from ``X-Request-ID`` when the caller sends one (the player
    does, so client and server logs line up) and is echoed on the response.
    Requests slower than ``slow_request_ms`` are logged as warnings.
    """

    REQUEST_ID_HEADER = "X-Request-ID"

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
        slow_request_ms: float = 1000.0,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = tuple(exclude_paths or ["/health"])
        self.slow_request_ms = slow_request_ms

    def _should_log(self, path: str) -> bool:
        return self.log_requests and not path.startswith(self.exclude_paths)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        started = time.perf_counter()
        request_id = set_request_id(request.headers.get(self.REQUEST_ID_HEADER))
        request.state.request_id = request_id

        path = request.url.path
        should_log = self._should_log(path)
        log = logger.bind(method=request.method, path=path)
        if should_log:
            log.info(
                "request_started",
                user_id=request.query_params.get("userId"),
            )

        try:
            response = await call_next(request)
        except Exception as e:
            log.exception(
                "request_failed",
                error_type=type(e).__name__,
                duration_ms=_elapsed_ms(started),
            )
            raise
        finally:
            clear_context()

        response.headers[self.REQUEST_ID_HEADER] = request_id

        duration_ms = _elapsed_ms(started)
        if should_log:
            slow = duration_ms > self.slow_request_ms
            warn = slow or response.status_code >= 500
            log_method = log.warning if warn else log.info
            log_method(
                "request_slow" if slow else "request_completed",
                status_code=response.status_code,
                duration_ms=duration_ms,
                request_id=request_id,
            )

        return response
