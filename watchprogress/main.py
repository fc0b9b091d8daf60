"""watchprogress API application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from watchprogress.config import Settings, get_settings
from watchprogress.core.context import get_request_id
from watchprogress.core.locks import KeyedLock, RedisKeyedLock
from watchprogress.core.logging import configure_structlog, get_logger
from watchprogress.core.middleware import RequestContextMiddleware
from watchprogress.core.redis import init_redis, shutdown_redis
from watchprogress.health import router as health_router
from watchprogress.progress.dependencies import handle_progress_error
from watchprogress.progress.router import router as progress_router
from watchprogress.progress.service import ProgressError, ProgressService
from watchprogress.progress.storage import (
    CassandraProgressStore,
    InMemoryProgressStore,
    ProgressStore,
)


# Logging is configured at import so module loggers pick it up
settings = get_settings()
configure_structlog(settings)

logger = get_logger(__name__)


async def _build_store(settings: Settings) -> ProgressStore:
    """Create the configured progress store."""
    if not settings.uses_cassandra:
        logger.info("progress_store_in_memory")
        return InMemoryProgressStore()

    # cassandra_asyncio is only needed by this backend
    from watchprogress.core.database import init_async_cassandra

    session = await init_async_cassandra(settings)
    return CassandraProgressStore(
        session=session, keyspace=settings.cassandra_keyspace
    )


async def _build_locks(settings: Settings) -> KeyedLock | RedisKeyedLock:
    """Create the configured per-key lock table."""
    if settings.progress_locks == "redis":
        redis_client = await init_redis()
        return RedisKeyedLock(
            redis_client,
            timeout=settings.progress_lock_timeout,
            blocking_timeout=settings.progress_lock_blocking_timeout,
        )
    return KeyedLock()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Wire the progress service to the configured store and locks."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        storage_backend=settings.storage_backend,
    )

    try:
        store = await _build_store(settings)
        locks = await _build_locks(settings)
        app.state.progress_service = ProgressService(
            store=store,
            locks=locks,
            completion_threshold=settings.completion_threshold,
        )
        logger.info("progress_service_initialized", locks=settings.progress_locks)
    except Exception as e:
        # Endpoints answer 503 until a restart succeeds
        logger.warning(
            "progress_service_init_skipped",
            error=str(e),
            message="Running without progress storage",
        )

    yield

    logger.info("shutting_down_application")
    app.state.progress_service = None
    await shutdown_redis()
    if settings.uses_cassandra:
        from watchprogress.core.database import shutdown_async_cassandra

        await shutdown_async_cassandra()


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None) or get_request_id() or None


def _error_response(
    request: Request, status_code: int, message: str, **extra: Any
) -> ORJSONResponse:
    """JSON error body shared by every handler."""
    return ORJSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "message": message,
            "status_code": status_code,
            "request_id": _request_id(request),
            **extra,
        },
    )


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ProgressError)
    async def progress_exception_handler(
        request: Request, exc: ProgressError
    ) -> ORJSONResponse:
        """Domain errors carry their own status and machine-readable code."""
        logger.warning("progress_error", code=exc.code, path=request.url.path)
        return handle_progress_error(exc, _request_id(request))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
        )
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            message = "Endpoint not found"
        elif (
            exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            or exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        ):
            message = str(exc.detail)
        else:
            message = "Internal server error"
        return _error_response(request, exc.status_code, message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Bodies that are not a JSON object never reach the validator."""
        errors = [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        logger.warning("request_body_rejected", errors=errors, path=request.url.path)
        return _error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation error",
            code="invalid_request",
            details=errors,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return _error_response(
            request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Something went wrong!"
        )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API: progress routes, health probes, middleware, handlers."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Checkpoint-based video watch progress",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )
    # Set by lifespan; dependencies answer 503 while it is None
    app.state.progress_service = None

    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
        slow_request_ms=settings.log_slow_request_ms,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    _register_exception_handlers(app)
    app.include_router(health_router)
    app.include_router(progress_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, Any]:
        return {
            "message": f"{settings.app_name} API",
            "version": settings.app_version,
            "progress": "/api/videos/{video_id}/progress",
        }

    return app


app = create_app()
