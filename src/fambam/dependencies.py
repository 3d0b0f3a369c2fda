"""FastAPI dependencies shared by routers."""

import logging
from collections.abc import AsyncGenerator

import redis.asyncio as redis

from fambam.redis_client import get_redis

logger = logging.getLogger(__name__)


async def get_redis_dep() -> AsyncGenerator[redis.Redis | None, None]:
    """Redis client for event publishing, or None when the pool is not up."""
    try:
        client = get_redis()
    except RuntimeError:
        logger.warning("Redis not initialized; completion and badge events will not be published")
        client = None
    yield client
