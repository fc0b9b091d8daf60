# ruff: noqa: PLW0603
"""Redis client for distributed progress locks.

Only used with ``PROGRESS_LOCKS=redis``, when several API workers share one
progress store and saves for a key must be serialized across them.
"""

import redis.asyncio as redis

from watchprogress.config import get_settings
from watchprogress.core.logging import get_logger


logger = get_logger(__name__)

LOCK_PREFIX = "progress:lock"

_redis_client: redis.Redis | None = None


def progress_lock_name(video_id: str, user_id: str) -> str:
    """Redis key of the lock guarding one (video, user) progress record."""
    return f"{LOCK_PREFIX}:{video_id}:{user_id}"


async def init_redis() -> redis.Redis:
    """Create the shared client and check the server answers.

    Raises:
        redis.ConnectionError: If the server cannot be reached
    """
    global _redis_client

    settings = get_settings()
    client = redis.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        retry_on_timeout=settings.redis_retry_on_timeout,
        decode_responses=True,
    )

    try:
        await client.ping()
    except redis.ConnectionError as e:
        logger.warning(
            "redis_connection_failed", redis_url=settings.redis_url, error=str(e)
        )
        await client.aclose()
        raise

    logger.info("redis_connected", redis_url=settings.redis_url)
    _redis_client = client
    return client


async def shutdown_redis() -> None:
    """Close the shared client, if any."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("redis_disconnected")
