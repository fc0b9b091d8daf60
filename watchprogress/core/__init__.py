# Core infrastructure
from watchprogress.core.context import (
    clear_context,
    get_context,
    get_request_id,
    set_progress_context,
    set_request_id,
)
from watchprogress.core.locks import KeyedLock, LockAcquireError, RedisKeyedLock
from watchprogress.core.logging import configure_structlog, get_logger
from watchprogress.core.middleware import RequestContextMiddleware


__all__ = [
    "KeyedLock",
    "LockAcquireError",
    "RedisKeyedLock",
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "set_progress_context",
    "set_request_id",
]
